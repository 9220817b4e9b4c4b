from firmflow.core.status_definitions import TERMINAL_STATUSES
from firmflow.core.transition_rules import (
    Gate,
    InputRequirement,
    TRANSITIONS,
    allowed_rules,
    describe_transitions,
    get_rule,
    is_valid_step,
)
from firmflow.db.enums import ServiceAction, ServiceStatus


def test_terminal_statuses_have_no_rules():
    for status in TERMINAL_STATUSES:
        assert TRANSITIONS[status] == {}


def test_cancel_is_available_from_every_non_terminal_status():
    for status in ServiceStatus:
        rule = get_rule(status, ServiceAction.CANCEL)
        if status in TERMINAL_STATUSES:
            assert rule is None
        else:
            assert rule.to_status == ServiceStatus.CANCELLED
            assert rule.gate == Gate.MANAGER
            assert rule.requires == InputRequirement.TEXT


def test_core_table():
    assert get_rule("pending", "assign").to_status == ServiceStatus.ASSIGNED
    assert get_rule("pending", "assign").requires == InputRequirement.ASSIGNEE
    assert get_rule("assigned", "start-work").to_status == ServiceStatus.IN_PROGRESS
    assert get_rule("in_progress", "submit-review").gate == Gate.WORKER
    assert get_rule("in_progress", "mark-complete").gate == Gate.MANAGER
    assert get_rule("waiting_for_client", "put-on-hold").to_status == ServiceStatus.ON_HOLD
    assert get_rule("under_review", "request-changes").requires == InputRequirement.TEXT
    assert get_rule("changes_requested", "resume-work").to_status == ServiceStatus.IN_PROGRESS
    assert get_rule("completed", "deliver").to_status == ServiceStatus.DELIVERED
    assert get_rule("invoiced", "close").to_status == ServiceStatus.CLOSED


def test_ownership_actions_keep_status():
    for status in (ServiceStatus.ASSIGNED, ServiceStatus.IN_PROGRESS):
        assert get_rule(status, ServiceAction.DELEGATE).to_status == status
    for status in (
        ServiceStatus.ASSIGNED,
        ServiceStatus.IN_PROGRESS,
        ServiceStatus.WAITING_FOR_CLIENT,
        ServiceStatus.ON_HOLD,
        ServiceStatus.CHANGES_REQUESTED,
    ):
        assert get_rule(status, ServiceAction.REASSIGN).to_status == status
        assert get_rule(status, ServiceAction.TAKE_BACK).gate == Gate.DELEGATOR
    assert get_rule(ServiceStatus.UNDER_REVIEW, ServiceAction.DELEGATE) is None


def test_invoice_rule_is_external():
    rule = get_rule(ServiceStatus.DELIVERED, ServiceAction.INVOICE_GENERATED)
    assert rule.external
    assert rule.to_status == ServiceStatus.INVOICED
    assert [r.action for r in allowed_rules(ServiceStatus.DELIVERED)] == [ServiceAction.CANCEL]
    assert ServiceAction.INVOICE_GENERATED in [
        r.action for r in allowed_rules(ServiceStatus.DELIVERED, include_external=True)
    ]


def test_unknown_inputs_return_none():
    assert get_rule("pending", "start-work") is None
    assert get_rule("pending", "teleport") is None
    assert get_rule("archived", "assign") is None


def test_is_valid_step():
    assert is_valid_step("in_progress", "in_progress", "delegate")
    assert is_valid_step("delivered", "invoiced", "invoice-generated")
    assert not is_valid_step("pending", "in_progress", "assign")


def test_describe_transitions_is_serializable_and_complete():
    rows = describe_transitions()
    assert len(rows) == sum(len(rules) for rules in TRANSITIONS.values())
    assert {
        "from_status": "under_review",
        "action": "approve",
        "to_status": "completed",
        "gate": "manager",
        "requires": "none",
        "label": "Approve",
        "external": False,
    } in rows
