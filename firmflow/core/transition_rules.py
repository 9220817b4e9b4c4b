"""
Service transition table.

Declared as data: for each status, the actions that may be attempted,
who may attempt them, what input they need and where they lead.
The engine in services/service_transition_service.py is the only writer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from firmflow.core.status_definitions import TERMINAL_STATUSES
from firmflow.db.enums import ServiceAction, ServiceStatus


class Gate(str, Enum):
    """Who may attempt an action."""

    MANAGER = "manager"  # PROJECT_MANAGER or admin tier
    ASSIGNEE = "assignee"  # ACTIVE assignee, or admin tier
    WORKER = "worker"  # ACTIVE assignee holding a worker-tier role
    DELEGATOR = "delegator"  # assigned_by of the ACTIVE assignment, or admin tier


class InputRequirement(str, Enum):
    NONE = "none"
    TEXT = "text"
    ASSIGNEE = "assignee"


@dataclass(frozen=True)
class ActionRule:
    action: ServiceAction
    to_status: ServiceStatus
    gate: Gate
    requires: InputRequirement = InputRequirement.NONE
    label: str = ""
    # External events are recorded by their own entry point, never via attempt()
    external: bool = False


def _rule(action, to_status, gate, requires=InputRequirement.NONE, label="", external=False):
    return ActionRule(
        action=action,
        to_status=to_status,
        gate=gate,
        requires=requires,
        label=label,
        external=external,
    )


def _ownership_rules(status: ServiceStatus) -> list[ActionRule]:
    """Re-assignment and take-back keep the status."""
    return [
        _rule(ServiceAction.REASSIGN, status, Gate.MANAGER, InputRequirement.ASSIGNEE, "Reassign"),
        _rule(ServiceAction.TAKE_BACK, status, Gate.DELEGATOR, label="Take Back"),
    ]


_S = ServiceStatus
_A = ServiceAction

_TABLE: dict[ServiceStatus, list[ActionRule]] = {
    _S.PENDING: [
        _rule(_A.ASSIGN, _S.ASSIGNED, Gate.MANAGER, InputRequirement.ASSIGNEE, "Assign"),
    ],
    _S.ASSIGNED: [
        _rule(_A.START_WORK, _S.IN_PROGRESS, Gate.ASSIGNEE, label="Start Work"),
        _rule(_A.DELEGATE, _S.ASSIGNED, Gate.ASSIGNEE, InputRequirement.ASSIGNEE, "Delegate"),
        *_ownership_rules(_S.ASSIGNED),
    ],
    _S.IN_PROGRESS: [
        _rule(
            _A.REQUEST_DOCUMENTS,
            _S.WAITING_FOR_CLIENT,
            Gate.ASSIGNEE,
            InputRequirement.TEXT,
            "Request Documents",
        ),
        _rule(_A.PUT_ON_HOLD, _S.ON_HOLD, Gate.ASSIGNEE, InputRequirement.TEXT, "Put On Hold"),
        _rule(_A.SUBMIT_REVIEW, _S.UNDER_REVIEW, Gate.WORKER, label="Submit for Review"),
        _rule(_A.MARK_COMPLETE, _S.COMPLETED, Gate.MANAGER, label="Mark Complete"),
        _rule(_A.DELEGATE, _S.IN_PROGRESS, Gate.ASSIGNEE, InputRequirement.ASSIGNEE, "Delegate"),
        *_ownership_rules(_S.IN_PROGRESS),
    ],
    _S.WAITING_FOR_CLIENT: [
        _rule(_A.RESUME_WORK, _S.IN_PROGRESS, Gate.ASSIGNEE, label="Resume Work"),
        _rule(_A.PUT_ON_HOLD, _S.ON_HOLD, Gate.ASSIGNEE, InputRequirement.TEXT, "Put On Hold"),
        *_ownership_rules(_S.WAITING_FOR_CLIENT),
    ],
    _S.ON_HOLD: [
        _rule(_A.RESUME_WORK, _S.IN_PROGRESS, Gate.ASSIGNEE, label="Resume Work"),
        *_ownership_rules(_S.ON_HOLD),
    ],
    _S.UNDER_REVIEW: [
        _rule(_A.APPROVE, _S.COMPLETED, Gate.MANAGER, label="Approve"),
        _rule(
            _A.REQUEST_CHANGES,
            _S.CHANGES_REQUESTED,
            Gate.MANAGER,
            InputRequirement.TEXT,
            "Request Changes",
        ),
    ],
    _S.CHANGES_REQUESTED: [
        _rule(_A.RESUME_WORK, _S.IN_PROGRESS, Gate.ASSIGNEE, label="Resume Work"),
        *_ownership_rules(_S.CHANGES_REQUESTED),
    ],
    _S.COMPLETED: [
        _rule(_A.DELIVER, _S.DELIVERED, Gate.MANAGER, label="Mark Delivered"),
    ],
    _S.DELIVERED: [
        _rule(
            _A.INVOICE_GENERATED,
            _S.INVOICED,
            Gate.MANAGER,
            label="Invoice Generated",
            external=True,
        ),
    ],
    _S.INVOICED: [
        _rule(_A.CLOSE, _S.CLOSED, Gate.MANAGER, label="Close"),
    ],
    _S.CLOSED: [],
    _S.CANCELLED: [],
}

# cancel is available from every non-terminal status
for _status, _rules in _TABLE.items():
    if _status not in TERMINAL_STATUSES:
        _rules.append(
            _rule(_A.CANCEL, _S.CANCELLED, Gate.MANAGER, InputRequirement.TEXT, "Cancel")
        )

TRANSITIONS: dict[ServiceStatus, dict[ServiceAction, ActionRule]] = {
    status: {rule.action: rule for rule in rules} for status, rules in _TABLE.items()
}

# Actions that move ownership but keep the status
OWNERSHIP_ACTIONS = frozenset({_A.DELEGATE, _A.REASSIGN, _A.TAKE_BACK})


def get_rule(status: ServiceStatus | str, action: ServiceAction | str) -> ActionRule | None:
    """Return the rule for (status, action), or None if the pair is not in the table."""
    try:
        status = ServiceStatus(status)
        action = ServiceAction(action)
    except ValueError:
        return None
    return TRANSITIONS[status].get(action)


def allowed_rules(status: ServiceStatus | str, *, include_external: bool = False) -> list[ActionRule]:
    """Rules defined for a status, in declaration order."""
    rules = TRANSITIONS[ServiceStatus(status)].values()
    return [r for r in rules if include_external or not r.external]


def is_valid_step(
    from_status: ServiceStatus | str,
    to_status: ServiceStatus | str,
    action: ServiceAction | str,
) -> bool:
    """True when action leads from from_status to to_status."""
    rule = get_rule(from_status, action)
    return rule is not None and rule.to_status == ServiceStatus(to_status)


def describe_transitions() -> list[dict]:
    """Serializable dump of the table (metadata endpoint and CLI)."""
    return [
        {
            "from_status": status.value,
            "action": rule.action.value,
            "to_status": rule.to_status.value,
            "gate": rule.gate.value,
            "requires": rule.requires.value,
            "label": rule.label,
            "external": rule.external,
        }
        for status, rules in TRANSITIONS.items()
        for rule in rules.values()
    ]
