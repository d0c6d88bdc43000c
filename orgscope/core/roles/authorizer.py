"""Action authorizer.

Answers "can this context perform this action on this target". Denials
are plain False. Only context resolution (a user with no role) raises,
and that happens before a context exists.
"""

import logging
from decimal import Decimal

from core.roles.models import Action, PermissionContext, RoleType, parse_amount
from core.roles.scope import ScopeInclusionChecker

logger = logging.getLogger('orgscope.core.roles.authorizer')


def within_limit(context: PermissionContext, amount) -> bool:
    """Amount check for approve_listing. A missing amount cannot be approved."""
    if amount is None:
        return False
    return parse_amount(amount) <= context.max_approval_amount


class ActionAuthorizer:

    def __init__(self, scope_checker: ScopeInclusionChecker = None):
        self._scope_checker = scope_checker or ScopeInclusionChecker()

    def authorize(self, context: PermissionContext, action, target_type=None,
                  target_id=None, listing_amount: Decimal | None = None) -> bool:
        action = Action(action)

        if context.role_type == RoleType.ADMIN:
            if action == Action.APPROVE_LISTING:
                return within_limit(context, listing_amount)
            return True

        if not context.has_flag(action):
            return False
        if action == Action.APPROVE_LISTING and not within_limit(context, listing_amount):
            return False
        if target_type is not None and target_id is not None:
            return self._scope_checker.includes(context, target_type, target_id)
        return True
