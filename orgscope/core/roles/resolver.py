"""Permission context resolution.

Turns a user's single role assignment into the effective PermissionContext
every authorization decision is made from. Nothing is cached: each call
reads the current assignment so structural and role changes apply on the
next request.
"""

import logging
from decimal import Decimal

from core.exceptions import NoRoleAssignedError
from core.roles.models import PermissionContext, RoleType, ScopeType
from core.roles.repositories import AssignmentRepository

logger = logging.getLogger('orgscope.core.roles.resolver')


def context_from_row(row: dict) -> PermissionContext:
    """Build the effective context from an assignment row joined with its role.

    The override wins whenever it is set; flags always come from the role.
    """
    override = row.get('max_approval_amount_override')
    limit = override if override is not None else row['max_approval_amount']
    return PermissionContext(
        user_id=row['user_id'],
        company_id=row['company_id'],
        role_id=row['role_id'],
        role_type=RoleType(row['role_type']),
        can_manage_structure=bool(row['can_manage_structure']),
        can_approve_listings=bool(row['can_approve_listings']),
        can_access_settings=bool(row['can_access_settings']),
        scope_type=ScopeType(row['scope_type']),
        scope_id=row.get('scope_id'),
        max_approval_amount=Decimal(str(limit)),
    )


class PermissionContextResolver:

    def __init__(self, assignment_repo: AssignmentRepository = None):
        self._assignment_repo = assignment_repo or AssignmentRepository()

    def resolve(self, user_id, company_id) -> PermissionContext:
        """Effective context of `user_id` in `company_id`.

        Raises:
            NoRoleAssignedError: the user has no active assignment in the company
        """
        row = self._assignment_repo.get_for_user(user_id, company_id)
        if not row:
            raise NoRoleAssignedError(user_id, company_id)
        return context_from_row(row)

    def try_resolve(self, user_id, company_id) -> PermissionContext | None:
        """resolve() that returns None instead of raising for a missing role."""
        try:
            return self.resolve(user_id, company_id)
        except NoRoleAssignedError:
            logger.debug(f'User {user_id} has no role in company {company_id}')
            return None
