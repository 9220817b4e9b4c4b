"""Service layer modules.

Import modules (not individual functions), e.g.
``from firmflow.services import service_transition_service``.
"""
