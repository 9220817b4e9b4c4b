"""Metadata router - status registry and transition table for clients to render."""

from fastapi import APIRouter, Depends

from firmflow.core.deps import get_current_session
from firmflow.core.status_definitions import get_status_defs
from firmflow.core.transition_rules import describe_transitions
from firmflow.db.enums import ServiceType
from firmflow.schemas.auth import UserSession

router = APIRouter()


@router.get("/statuses")
def list_service_statuses(
    session: UserSession = Depends(get_current_session),
):
    """
    Get all service statuses with metadata.

    Returns list of {value, label, description, phase, is_terminal}.
    """
    return {"statuses": get_status_defs()}


@router.get("/transitions")
def list_transitions(
    session: UserSession = Depends(get_current_session),
):
    return {"transitions": describe_transitions()}


@router.get("/service-types")
def list_service_types(
    session: UserSession = Depends(get_current_session),
):
    types = [
        {"value": t.value, "label": t.value.replace("_", " ").title()}
        for t in ServiceType
    ]
    return {"service_types": types}
