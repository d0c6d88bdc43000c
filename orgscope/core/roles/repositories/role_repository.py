"""Role repository.

Per-company role definitions: the four auto-provisioned system roles
and any custom roles an admin defines on top of them.
"""

import logging

from core.base_repository import BaseRepository
from core.config import get_config
from core.roles.models import RoleType, SYSTEM_ROLES

logger = logging.getLogger('orgscope.core.roles.role_repository')

_FLAGS = ('can_manage_structure', 'can_approve_listings', 'can_access_settings')


def _default_limit(role_type: RoleType):
    config = get_config()
    return {
        RoleType.ADMIN: config.ADMIN_APPROVAL_LIMIT,
        RoleType.MANAGER: config.MANAGER_APPROVAL_LIMIT,
        RoleType.LEAD: config.LEAD_APPROVAL_LIMIT,
        RoleType.MEMBER: config.MEMBER_APPROVAL_LIMIT,
    }[role_type]


def _is_unique_violation(e: Exception) -> bool:
    return 'unique' in str(e).lower() or 'duplicate' in str(e).lower()


class RoleRepository(BaseRepository):

    def get_all(self, company_id) -> list[dict]:
        """Active roles of a company, system roles first."""
        return self.query_all('''
            SELECT * FROM roles
            WHERE company_id = %s AND deleted_at IS NULL
            ORDER BY is_system_role DESC, max_approval_amount DESC, name
        ''', (company_id,))

    def get(self, role_id, company_id) -> dict | None:
        return self.query_one('''
            SELECT * FROM roles WHERE id = %s AND company_id = %s AND deleted_at IS NULL
        ''', (role_id, company_id))

    def get_system_role(self, company_id, role_type: RoleType) -> dict | None:
        return self.query_one('''
            SELECT * FROM roles
            WHERE company_id = %s AND role_type = %s AND is_system_role = TRUE
              AND deleted_at IS NULL
        ''', (company_id, role_type.value))

    def get_system_role_in(self, cursor, company_id, role_type: RoleType) -> dict | None:
        """Same as get_system_role, inside the caller's transaction."""
        cursor.execute('''
            SELECT * FROM roles
            WHERE company_id = %s AND role_type = %s AND is_system_role = TRUE
              AND deleted_at IS NULL
        ''', (company_id, role_type.value))
        return cursor.fetchone()

    def provision_system_roles(self, company_id) -> list[dict]:
        """Create the four system roles for a company unless they already exist.

        Idempotent: if any system role exists the existing set is returned
        untouched. Concurrent callers are serialized on a per-company lock.
        """
        def _work(cursor):
            cursor.execute('''
                SELECT * FROM roles
                WHERE company_id = %s AND is_system_role = TRUE AND deleted_at IS NULL
                ORDER BY max_approval_amount DESC
            ''', (company_id,))
            existing = cursor.fetchall()
            if existing:
                return [dict(r) for r in existing]

            created = []
            for template in SYSTEM_ROLES:
                cursor.execute('''
                    INSERT INTO roles (company_id, name, description, role_type,
                        can_manage_structure, can_approve_listings, can_access_settings,
                        max_approval_amount, is_system_role)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, TRUE)
                    RETURNING *
                ''', (company_id, template.name, template.description, template.role_type.value,
                      template.can_manage_structure, template.can_approve_listings,
                      template.can_access_settings, _default_limit(template.role_type)))
                created.append(dict(cursor.fetchone()))
            logger.info(f'Provisioned {len(created)} system roles for company {company_id}')
            return created

        return self.execute_many(_work, lock_key=f'system_roles:{company_id}')

    def save(self, company_id, name: str, role_type: RoleType, description: str = None,
             can_manage_structure: bool = False, can_approve_listings: bool = False,
             can_access_settings: bool = False, max_approval_amount=0) -> dict:
        """Create a custom role. Returns the new row."""
        try:
            return self.execute('''
                INSERT INTO roles (company_id, name, description, role_type,
                    can_manage_structure, can_approve_listings, can_access_settings,
                    max_approval_amount, is_system_role)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, FALSE)
                RETURNING *
            ''', (company_id, name, description, role_type.value,
                  can_manage_structure, can_approve_listings, can_access_settings,
                  max_approval_amount), returning=True)
        except Exception as e:
            if _is_unique_violation(e):
                raise ValueError(f"Role '{name}' already exists")
            raise

    def update(self, role_id, company_id, name: str = None, description: str = None,
               can_manage_structure: bool = None, can_approve_listings: bool = None,
               can_access_settings: bool = None, max_approval_amount=None) -> bool:
        """Update a custom role. System roles are read-only."""
        role = self.get(role_id, company_id)
        if not role:
            return False
        if role['is_system_role']:
            raise ValueError('System roles cannot be modified')

        updates = []
        params = []
        if name is not None:
            updates.append('name = %s')
            params.append(name)
        if description is not None:
            updates.append('description = %s')
            params.append(description)
        for flag, value in zip(_FLAGS, (can_manage_structure, can_approve_listings, can_access_settings)):
            if value is not None:
                updates.append(f'{flag} = %s')
                params.append(value)
        if max_approval_amount is not None:
            updates.append('max_approval_amount = %s')
            params.append(max_approval_amount)
        if not updates:
            return False

        params.extend([role_id, company_id])
        try:
            rowcount = self.execute(
                f"UPDATE roles SET {', '.join(updates)}, updated_at = NOW() "
                f"WHERE id = %s AND company_id = %s AND deleted_at IS NULL", params
            )
            return rowcount > 0
        except Exception as e:
            if _is_unique_violation(e):
                raise ValueError("Role with that name already exists")
            raise

    def delete(self, role_id, company_id) -> bool:
        """Soft-delete a custom role that nobody holds."""
        def _work(cursor):
            cursor.execute('''
                SELECT is_system_role FROM roles
                WHERE id = %s AND company_id = %s AND deleted_at IS NULL
            ''', (role_id, company_id))
            role = cursor.fetchone()
            if not role:
                return False
            if role['is_system_role']:
                raise ValueError('System roles cannot be deleted')
            cursor.execute('SELECT COUNT(*) AS count FROM user_roles WHERE role_id = %s', (role_id,))
            if cursor.fetchone()['count'] > 0:
                raise ValueError('Cannot delete role that is assigned to users')
            cursor.execute('UPDATE roles SET deleted_at = NOW() WHERE id = %s', (role_id,))
            return cursor.rowcount > 0
        return self.execute_many(_work)
