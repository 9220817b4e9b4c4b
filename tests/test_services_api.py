"""HTTP tests for /services: status codes, error bodies and client visibility."""

import uuid

import pytest

from firmflow.core.deps import COOKIE_NAME
from firmflow.db.enums import ServiceAction


def _transition(action, expected_version=None, **input_fields):
    body = {"action": action.value, "input": input_fields or None}
    if expected_version is not None:
        body["expected_version"] = expected_version
    return body


# =============================================================================
# Authentication and CSRF
# =============================================================================


@pytest.mark.asyncio
async def test_requires_session_cookie(anon_client):
    res = await anon_client.get("/services")
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_rejects_garbage_cookie(anon_client):
    anon_client.cookies.set(COOKIE_NAME, "not-a-jwt")
    res = await anon_client.get("/services")
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_revoked_session_is_rejected(db, manager, manager_client):
    manager.user.token_version += 1
    db.commit()

    res = await manager_client.get("/services")
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_mutation_requires_csrf_header(manager_client, client_record):
    res = await manager_client.post(
        "/services",
        json={"client_id": str(client_record.id), "service_type": "itr_filing", "title": "ITR"},
        headers={"X-Requested-With": ""},
    )
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_health(anon_client):
    res = await anon_client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


# =============================================================================
# Create and read
# =============================================================================


@pytest.mark.asyncio
async def test_create_service(manager_client, client_record):
    res = await manager_client.post(
        "/services",
        json={
            "client_id": str(client_record.id),
            "service_type": "gst_return",
            "title": "GSTR-3B March",
            "financial_year": "2025-26",
        },
    )
    assert res.status_code == 201
    service = res.json()
    assert service["status"] == "pending"
    assert service["version"] == 1
    assert service["origin"] == "firm_created"

    res = await manager_client.get(f"/services/{service['id']}/history")
    assert res.status_code == 200
    (record,) = res.json()
    assert record["action"] == "create"
    assert record["metadata"] == {"origin": "firm_created"}


@pytest.mark.asyncio
async def test_create_and_assign(manager_client, client_record, member):
    res = await manager_client.post(
        "/services",
        json={
            "client_id": str(client_record.id),
            "service_type": "itr_filing",
            "title": "ITR",
            "assign_to_id": str(member.user.id),
        },
    )
    assert res.status_code == 201
    assert res.json()["status"] == "assigned"
    assert res.json()["version"] == 2


@pytest.mark.asyncio
async def test_client_request_origin_is_not_creatable(manager_client, client_record):
    res = await manager_client.post(
        "/services",
        json={
            "client_id": str(client_record.id),
            "service_type": "itr_filing",
            "title": "ITR",
            "origin": "client_request",
        },
    )
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_team_member_cannot_create(member_client, client_record):
    res = await member_client.post(
        "/services",
        json={"client_id": str(client_record.id), "service_type": "itr_filing", "title": "ITR"},
    )
    assert res.status_code == 403
    assert res.json()["detail"]["kind"] == "unauthorized"


@pytest.mark.asyncio
async def test_unknown_service_is_404(manager_client):
    res = await manager_client.get(f"/services/{uuid.uuid4()}")
    assert res.status_code == 404
    assert res.json()["detail"]["kind"] == "not_found"


@pytest.mark.asyncio
async def test_list_and_stats(manager_client, create_service, assigned_service):
    create_service("Second")

    res = await manager_client.get("/services", params={"status": "assigned"})
    assert [s["id"] for s in res.json()] == [str(assigned_service.id)]

    res = await manager_client.get("/services/stats")
    stats = res.json()
    assert stats["by_status"]["pending"] == 1
    assert stats["by_status"]["assigned"] == 1
    assert stats["active"] == 2
    assert stats["total"] == 2


# =============================================================================
# Transitions
# =============================================================================


@pytest.mark.asyncio
async def test_assign_and_start_work(manager_client, member_client, create_service, member):
    service = create_service()

    res = await manager_client.post(
        f"/services/{service.id}/transition",
        json=_transition(ServiceAction.ASSIGN, expected_version=1, assignee_id=str(member.user.id)),
    )
    assert res.status_code == 200
    body = res.json()
    assert body["new_status"] == "assigned"
    assert body["service"]["version"] == 2
    assert body["audit_record"]["sequence"] == 2
    assert body["audit_record"]["metadata"]["assignee_id"] == str(member.user.id)

    res = await member_client.post(
        f"/services/{service.id}/transition",
        json=_transition(ServiceAction.START_WORK),
    )
    assert res.status_code == 200
    assert res.json()["service"]["started_at"] is not None


@pytest.mark.asyncio
async def test_error_bodies(member_client, manager_client, in_progress_service):
    url = f"/services/{in_progress_service.id}/transition"

    res = await member_client.post(url, json=_transition(ServiceAction.PUT_ON_HOLD))
    assert res.status_code == 400
    assert res.json()["detail"]["kind"] == "missing_input"
    assert res.json()["detail"]["message"]

    res = await member_client.post(url, json=_transition(ServiceAction.START_WORK))
    assert res.status_code == 400
    assert res.json()["detail"]["kind"] == "invalid_action"

    res = await member_client.post(url, json=_transition(ServiceAction.MARK_COMPLETE))
    assert res.status_code == 403
    assert res.json()["detail"]["kind"] == "unauthorized"

    res = await manager_client.post(
        url, json=_transition(ServiceAction.MARK_COMPLETE, expected_version=1)
    )
    assert res.status_code == 409
    assert res.json()["detail"]["kind"] == "conflict"

    res = await member_client.post(url, json={"action": "teleport"})
    assert res.status_code == 400
    assert res.json()["detail"]["kind"] == "invalid_action"

    res = await manager_client.get(f"/services/{in_progress_service.id}")
    assert res.json()["status"] == "in_progress"
    assert res.json()["version"] == 3


@pytest.mark.asyncio
async def test_invoice_only_through_event_endpoint(manager_client, create_service, act, manager, member):
    service = create_service()
    act(service, ServiceAction.ASSIGN, manager.actor, assignee_id=member.user.id)
    act(service, ServiceAction.START_WORK, member.actor)
    act(service, ServiceAction.MARK_COMPLETE, manager.actor)
    act(service, ServiceAction.DELIVER, manager.actor)

    res = await manager_client.post(
        f"/services/{service.id}/transition",
        json=_transition(ServiceAction.INVOICE_GENERATED),
    )
    assert res.status_code == 400

    res = await manager_client.post(
        f"/services/{service.id}/invoice", json={"invoice_id": "INV-2026-0042"}
    )
    assert res.status_code == 200
    body = res.json()
    assert body["new_status"] == "invoiced"
    assert body["audit_record"]["metadata"] == {"invoice_id": "INV-2026-0042"}


@pytest.mark.asyncio
async def test_available_actions(member_client, in_progress_service):
    res = await member_client.get(f"/services/{in_progress_service.id}/actions")
    assert res.status_code == 200
    actions = {a["action"]: a["requires"] for a in res.json()}
    assert actions == {
        "request-documents": "text",
        "put-on-hold": "text",
        "submit-review": "none",
        "delegate": "assignee",
    }


@pytest.mark.asyncio
async def test_assignments_and_chain(member_client, in_progress_service, act, member, member2):
    act(in_progress_service, ServiceAction.DELEGATE, member.actor, assignee_id=member2.user.id)

    res = await member_client.get(f"/services/{in_progress_service.id}/assignments")
    ledger = res.json()
    assert [a["status"] for a in ledger] == ["delegated", "active"]

    res = await member_client.get(
        f"/services/{in_progress_service.id}/assignments/{ledger[1]['id']}/chain"
    )
    assert [a["delegation_level"] for a in res.json()] == [0, 1]

    res = await member_client.get(
        f"/services/{in_progress_service.id}/assignments/{uuid.uuid4()}/chain"
    )
    assert res.status_code == 404


# =============================================================================
# Client visibility
# =============================================================================


@pytest.mark.asyncio
async def test_client_sees_own_services_read_only(client_client, in_progress_service):
    res = await client_client.get("/services")
    assert [s["id"] for s in res.json()] == [str(in_progress_service.id)]

    res = await client_client.get(f"/services/{in_progress_service.id}/history")
    assert res.status_code == 200

    res = await client_client.post(
        f"/services/{in_progress_service.id}/transition",
        json=_transition(ServiceAction.CANCEL, text="Please stop"),
    )
    assert res.status_code == 403
    assert res.json()["detail"]["kind"] == "unauthorized"

    res = await client_client.get(f"/services/{in_progress_service.id}/actions")
    assert res.json() == []


@pytest.mark.asyncio
async def test_client_cannot_see_other_clients_services(db, org, client_client, manager, clock):
    from firmflow.db.enums import ServiceType
    from firmflow.db.models import Client
    from firmflow.schemas.service import ServiceCreate
    from firmflow.services import service_service

    other = Client(id=uuid.uuid4(), organization_id=org.id, name="Other Client")
    db.add(other)
    db.commit()
    service = service_service.create_service(
        db,
        org.id,
        manager.actor,
        ServiceCreate(client_id=other.id, service_type=ServiceType.AUDIT, title="Statutory audit"),
        clock,
    )

    res = await client_client.get(f"/services/{service.id}")
    assert res.status_code == 404
    res = await client_client.get("/services")
    assert res.json() == []


# =============================================================================
# Metadata
# =============================================================================


@pytest.mark.asyncio
async def test_metadata_endpoints(member_client):
    res = await member_client.get("/metadata/statuses")
    statuses = {s["value"]: s for s in res.json()["statuses"]}
    assert statuses["closed"]["is_terminal"] is True
    assert statuses["in_progress"]["phase"] == "execution"

    res = await member_client.get("/metadata/transitions")
    rows = res.json()["transitions"]
    assert {"from_status": "pending", "action": "assign", "to_status": "assigned"}.items() <= rows[0].items()

    res = await member_client.get("/metadata/service-types")
    assert {"value": "itr_filing", "label": "Itr Filing"} in res.json()["service_types"]
