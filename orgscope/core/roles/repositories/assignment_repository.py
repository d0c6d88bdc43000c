"""Role assignment repository.

user_roles holds at most one row per user (unique user_id). Replacing a
role locks the user row and swaps the assignment inside one transaction,
so readers see either the old assignment or the new one.
"""

import logging

from core.base_repository import BaseRepository
from core.roles.models import RoleType

logger = logging.getLogger('orgscope.core.roles.assignment_repository')

_ASSIGNMENT_WITH_ROLE = '''
    SELECT ur.id, ur.user_id, ur.role_id, ur.scope_type, ur.scope_id,
           ur.max_approval_amount_override, ur.granted_by, ur.granted_at,
           r.company_id, r.name AS role_name, r.role_type,
           r.can_manage_structure, r.can_approve_listings, r.can_access_settings,
           r.max_approval_amount
    FROM user_roles ur
    JOIN roles r ON r.id = ur.role_id AND r.deleted_at IS NULL
    JOIN users u ON u.id = ur.user_id AND u.deleted_at IS NULL
'''


class AssignmentRepository(BaseRepository):

    def get_for_user(self, user_id, company_id) -> dict | None:
        """The user's active assignment in a company joined with its role."""
        return self.query_one(_ASSIGNMENT_WITH_ROLE + '''
            WHERE ur.user_id = %s AND r.company_id = %s
            ORDER BY ur.granted_at DESC
            LIMIT 1
        ''', (user_id, company_id))

    def get_all(self, company_id) -> list[dict]:
        return self.query_all(_ASSIGNMENT_WITH_ROLE + '''
            WHERE r.company_id = %s
            ORDER BY r.max_approval_amount DESC, ur.granted_at
        ''', (company_id,))

    def admin_user_ids(self, company_id) -> list:
        """Active admins of a company, longest-standing first."""
        return self.query_column('''
            SELECT ur.user_id
            FROM user_roles ur
            JOIN roles r ON r.id = ur.role_id AND r.deleted_at IS NULL
            JOIN users u ON u.id = ur.user_id AND u.deleted_at IS NULL AND u.status = 'active'
            WHERE r.company_id = %s AND r.role_type = %s
            ORDER BY ur.granted_at, ur.user_id
        ''', (company_id, RoleType.ADMIN.value))

    def replace(self, user_id, role_id, scope_type: str, scope_id=None,
                max_approval_amount_override=None, granted_by=None) -> dict:
        """Atomically replace whatever role the user holds. Returns the new row."""
        def _work(cursor):
            return self.replace_in(cursor, user_id, role_id, scope_type, scope_id,
                                   max_approval_amount_override, granted_by)
        return self.execute_many(_work)

    def replace_in(self, cursor, user_id, role_id, scope_type: str, scope_id=None,
                   max_approval_amount_override=None, granted_by=None) -> dict:
        """replace() inside the caller's transaction."""
        cursor.execute('SELECT id FROM users WHERE id = %s FOR UPDATE', (user_id,))
        cursor.execute('DELETE FROM user_roles WHERE user_id = %s', (user_id,))
        removed = cursor.rowcount
        cursor.execute('''
            INSERT INTO user_roles (user_id, role_id, scope_type, scope_id,
                max_approval_amount_override, granted_by, granted_at)
            VALUES (%s, %s, %s, %s, %s, %s, NOW())
            RETURNING *
        ''', (user_id, role_id, scope_type, scope_id, max_approval_amount_override, granted_by))
        row = dict(cursor.fetchone())
        logger.debug(f'Replaced {removed} assignment(s) of user {user_id} with role {role_id}')
        return row

    def current_role_type_in(self, cursor, user_id) -> str | None:
        """Role archetype the user currently holds, read inside a transaction."""
        cursor.execute('''
            SELECT r.role_type FROM user_roles ur
            JOIN roles r ON r.id = ur.role_id
            WHERE ur.user_id = %s
            LIMIT 1
        ''', (user_id,))
        row = cursor.fetchone()
        return row['role_type'] if row else None
