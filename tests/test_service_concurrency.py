"""Optimistic concurrency: of two writers that read the same version, one wins."""

import pytest

from firmflow.db.enums import ServiceAction, ServiceStatus
from firmflow.db.models import Service
from firmflow.schemas.service import TransitionInput
from firmflow.services import service_transition_service, status_history_service
from firmflow.services.workflow_errors import ConflictError


def test_same_expected_version_only_one_wins(db, org, in_progress_service, act, manager, manager2):
    version = in_progress_service.version

    act(in_progress_service, ServiceAction.MARK_COMPLETE, manager.actor, expected_version=version)
    with pytest.raises(ConflictError) as excinfo:
        act(
            in_progress_service,
            ServiceAction.CANCEL,
            manager2.actor,
            expected_version=version,
            text="Client withdrew",
        )

    assert excinfo.value.expected == version
    db.expire_all()
    service = db.get(Service, in_progress_service.id)
    assert service.status == ServiceStatus.COMPLETED.value
    assert service.version == version + 1
    history = status_history_service.get_history(db, org.id, service.id)
    assert [h.action for h in history] == ["create", "assign", "start-work", "mark-complete"]


def test_stale_session_loses_compare_and_set(
    db, org, session_factory, assigned_service, act, manager, member, clock
):
    # Second writer reads the service before the first one commits
    stale = session_factory()
    try:
        stale_service = stale.get(Service, assigned_service.id)
        assert stale_service.version == 2

        act(assigned_service, ServiceAction.START_WORK, member.actor)

        with pytest.raises(ConflictError):
            service_transition_service.attempt(
                stale,
                org.id,
                assigned_service.id,
                ServiceAction.CANCEL,
                manager.actor,
                TransitionInput(text="Client withdrew"),
                clock=clock,
            )
    finally:
        stale.close()

    db.expire_all()
    service = db.get(Service, assigned_service.id)
    assert service.status == ServiceStatus.IN_PROGRESS.value
    assert service.version == 3
    history = status_history_service.get_history(db, org.id, service.id)
    assert len(history) == 3
    assert status_history_service.verify_walk(history) == ServiceStatus.IN_PROGRESS


def test_retry_after_conflict_succeeds(db, org, assigned_service, act, manager, member):
    act(assigned_service, ServiceAction.START_WORK, member.actor, expected_version=2)
    with pytest.raises(ConflictError):
        act(assigned_service, ServiceAction.PUT_ON_HOLD, member.actor, expected_version=2, text="x")

    result = act(
        assigned_service,
        ServiceAction.PUT_ON_HOLD,
        member.actor,
        expected_version=3,
        text="Awaiting Form 26AS",
    )
    assert result["new_status"] == ServiceStatus.ON_HOLD
    assert result["audit_record"].sequence == 4
