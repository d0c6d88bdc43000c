"""In-process callback registry for organization and authorization events.

Usage:
    from core.approvals.hooks import on, fire

    on('role.assigned', notify_user)
    fire('role.assigned', {'user_id': uid, 'role_id': rid, 'company_id': cid})

Events:
    role.assigned                 - a user's role was replaced
    role.manager_promoted         - a department manager was promoted to the manager role
    department.created            - department inserted with its closure rows
    department.reparented         - subtree moved, closure rebuilt
    department.deleted            - department soft-deleted
    approval.approver_found       - escalation picked an approver for a listing
    approval.no_eligible_approver - escalation found nobody with enough limit

Hooks fire after the transaction that caused them has committed. A failing
callback is logged and never undoes that transaction.
"""

import logging

logger = logging.getLogger('orgscope.core.approvals.hooks')

_registry: dict[str, list] = {}


def on(event_type: str, callback):
    """Register a callback for an event type."""
    _registry.setdefault(event_type, []).append(callback)
    logger.debug(f"Registered hook for {event_type}: {callback.__name__}")


def fire(event_type: str, payload: dict):
    """Call all registered callbacks for event_type."""
    for cb in _registry.get(event_type, []):
        try:
            cb(payload)
        except Exception as e:
            logger.error(f"Hook error for {event_type} in {cb.__name__}: {e}", exc_info=True)


def clear(event_type: str = None):
    """Clear hooks. If event_type given, clear only that type. Used in tests."""
    if event_type:
        _registry.pop(event_type, None)
    else:
        _registry.clear()
