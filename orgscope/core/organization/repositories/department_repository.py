"""Department Repository - structural changes to the department tree.

Every mutation runs in one transaction holding the company's hierarchy
advisory lock, so the department rows, their level/path and the closure
rows for the whole affected subtree commit together or not at all.
Hooks fire only after commit.
"""
import logging

from psycopg2.extras import execute_values

from core.approvals import hooks
from core.base_repository import BaseRepository
from core.exceptions import CycleRejectedError, NotFoundError
from core.organization.hierarchy import level_and_path
from core.roles.models import RoleType, ScopeType
from core.roles.repositories import AssignmentRepository, RoleRepository
from .hierarchy_repository import HierarchyRepository, hierarchy_lock_key

logger = logging.getLogger('orgscope.core.organization.department_repository')

UNSET = object()


# ============== Validation helpers (caller's cursor) ==============

def _clean_name(name: str) -> str:
    name = (name or '').strip()
    if not name:
        raise ValueError('Department name is required')
    return name


def _active_department(cursor, department_id, company_id) -> dict:
    cursor.execute('''
        SELECT * FROM departments
        WHERE id = %s AND company_id = %s AND deleted_at IS NULL
    ''', (department_id, company_id))
    row = cursor.fetchone()
    if not row:
        raise NotFoundError('department', department_id)
    return row


def _check_name_free(cursor, company_id, name: str, exclude_id=None):
    cursor.execute('''
        SELECT id FROM departments
        WHERE company_id = %s AND name = %s AND deleted_at IS NULL
          AND (%s::uuid IS NULL OR id <> %s::uuid)
    ''', (company_id, name, exclude_id, exclude_id))
    if cursor.fetchone():
        raise ValueError(f"Department '{name}' already exists")


def _check_manager(cursor, manager_id, company_id):
    cursor.execute('''
        SELECT id FROM users
        WHERE id = %s AND company_id = %s AND deleted_at IS NULL AND status = 'active'
    ''', (manager_id, company_id))
    if not cursor.fetchone():
        raise ValueError('Manager must be an active member of your company')


def _check_teams(cursor, team_ids: list, company_id):
    cursor.execute('''
        SELECT id FROM teams
        WHERE id = ANY(%s::uuid[]) AND company_id = %s AND deleted_at IS NULL
    ''', (list(team_ids), company_id))
    found = {r['id'] for r in cursor.fetchall()}
    missing = [t for t in team_ids if t not in found]
    if missing:
        raise NotFoundError('team', missing[0])


def _link_teams(cursor, department_id, team_ids: list):
    """Attach teams to a department, detaching them from any other."""
    cursor.execute('DELETE FROM department_teams WHERE team_id = ANY(%s::uuid[])', (list(team_ids),))
    execute_values(cursor, '''
        INSERT INTO department_teams (department_id, team_id) VALUES %s
    ''', [(department_id, t) for t in team_ids])


class DepartmentRepository(BaseRepository):
    """Repository for department structure mutations."""

    def __init__(self, hierarchy_repo: HierarchyRepository = None,
                 role_repo: RoleRepository = None,
                 assignment_repo: AssignmentRepository = None):
        self._hierarchy = hierarchy_repo or HierarchyRepository()
        self._role_repo = role_repo or RoleRepository()
        self._assignment_repo = assignment_repo or AssignmentRepository()

    # ============== Create ==============

    def create(self, company_id, name: str, parent_id=None, manager_id=None,
               team_ids: list = None, description: str = None) -> dict:
        """Create a department, index it and link the given teams."""
        name = _clean_name(name)
        team_ids = list(dict.fromkeys(team_ids or []))

        def _work(cursor):
            _check_name_free(cursor, company_id, name)
            parent = _active_department(cursor, parent_id, company_id) if parent_id else None
            if manager_id:
                _check_manager(cursor, manager_id, company_id)
            if team_ids:
                _check_teams(cursor, team_ids, company_id)

            level, path = level_and_path(name, parent)
            max_depth = self._hierarchy.company_max_depth(cursor, company_id)
            if level > max_depth:
                raise ValueError(f'Hierarchy depth limit is {max_depth} levels')

            cursor.execute('''
                INSERT INTO departments (company_id, name, description, parent_department_id,
                    level, path, manager_user_id)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING *
            ''', (company_id, name, description, parent_id, level, path, manager_id))
            department = dict(cursor.fetchone())

            self._hierarchy.index_new_department(cursor, department['id'], parent_id)
            if team_ids:
                _link_teams(cursor, department['id'], team_ids)
            promoted = self._promote_manager(cursor, company_id, manager_id, department['id'])
            return department, promoted

        department, promoted = self.execute_many(_work, lock_key=hierarchy_lock_key(company_id))

        logger.info(f"Department created: {department['path']} ({department['id']}) in company {company_id}")
        hooks.fire('department.created', {
            'company_id': company_id, 'department_id': department['id'],
            'parent_department_id': parent_id, 'team_ids': team_ids,
        })
        self._fire_promotion(promoted, company_id, manager_id, department['id'])
        return department

    def create_from_teams(self, company_id, name: str, team_ids: list, parent_id=None,
                          manager_id=None, description: str = None) -> dict:
        """Create a department around existing teams."""
        if not team_ids:
            raise ValueError('At least one team is required')
        return self.create(company_id, name, parent_id=parent_id, manager_id=manager_id,
                           team_ids=team_ids, description=description)

    def group(self, company_id, name: str, department_ids: list, manager_id=None,
              description: str = None) -> dict:
        """Create a new root department and move the given departments under it."""
        name = _clean_name(name)
        department_ids = list(dict.fromkeys(department_ids or []))
        if not department_ids:
            raise ValueError('At least one department is required')

        def _work(cursor):
            _check_name_free(cursor, company_id, name)
            if manager_id:
                _check_manager(cursor, manager_id, company_id)
            for department_id in department_ids:
                _active_department(cursor, department_id, company_id)

            cursor.execute('''
                INSERT INTO departments (company_id, name, description, parent_department_id,
                    level, path, manager_user_id)
                VALUES (%s, %s, %s, NULL, 1, %s, %s)
                RETURNING *
            ''', (company_id, name, description, name, manager_id))
            group = dict(cursor.fetchone())
            self._hierarchy.index_new_department(cursor, group['id'])

            max_depth = self._hierarchy.company_max_depth(cursor, company_id)
            for department_id in department_ids:
                self._hierarchy.rebuild_subtree(cursor, department_id, group['id'], max_depth)
            promoted = self._promote_manager(cursor, company_id, manager_id, group['id'])
            return group, promoted

        group, promoted = self.execute_many(_work, lock_key=hierarchy_lock_key(company_id))

        logger.info(f"Grouped {len(department_ids)} departments under {group['name']} ({group['id']})")
        hooks.fire('department.created', {
            'company_id': company_id, 'department_id': group['id'], 'parent_department_id': None,
        })
        for department_id in department_ids:
            hooks.fire('department.reparented', {
                'company_id': company_id, 'department_id': department_id,
                'parent_department_id': group['id'],
            })
        self._fire_promotion(promoted, company_id, manager_id, group['id'])
        return group

    # ============== Update ==============

    def update(self, department_id, company_id, name: str = None, description: str = None,
               parent_id=UNSET, manager_id=UNSET) -> dict:
        """Rename, reparent, change manager or description.

        `parent_id` / `manager_id` accept None to clear; leave them UNSET to
        keep the current value. Setting the current parent again is a no-op.
        """
        def _work(cursor):
            department = _active_department(cursor, department_id, company_id)

            reparent = parent_id is not UNSET and parent_id != department['parent_department_id']
            if reparent and parent_id is not None:
                _active_department(cursor, parent_id, company_id)
                if parent_id == department_id or self._hierarchy.contains_in(cursor, department_id, parent_id):
                    raise CycleRejectedError(department_id, parent_id)

            new_name = _clean_name(name) if name is not None else department['name']
            renamed = new_name != department['name']
            if renamed:
                _check_name_free(cursor, company_id, new_name, exclude_id=department_id)

            manager_changed = manager_id is not UNSET and manager_id != department['manager_user_id']
            if manager_changed and manager_id is not None:
                _check_manager(cursor, manager_id, company_id)

            updates, params = [], []
            if renamed:
                updates.append('name = %s')
                params.append(new_name)
            if description is not None:
                updates.append('description = %s')
                params.append(description)
            if manager_changed:
                updates.append('manager_user_id = %s')
                params.append(manager_id)
            if updates:
                params.append(department_id)
                cursor.execute(
                    f"UPDATE departments SET {', '.join(updates)}, updated_at = NOW() WHERE id = %s",
                    params,
                )

            if reparent or renamed:
                target_parent = parent_id if reparent else department['parent_department_id']
                max_depth = self._hierarchy.company_max_depth(cursor, company_id)
                self._hierarchy.rebuild_subtree(cursor, department_id, target_parent, max_depth)

            promoted = manager_changed and self._promote_manager(cursor, company_id, manager_id, department_id)

            cursor.execute('SELECT * FROM departments WHERE id = %s', (department_id,))
            return dict(cursor.fetchone()), reparent, promoted

        department, reparented, promoted = self.execute_many(
            _work, lock_key=hierarchy_lock_key(company_id))

        if reparented:
            logger.info(f"Department {department_id} reparented under {parent_id}; path now {department['path']}")
            hooks.fire('department.reparented', {
                'company_id': company_id, 'department_id': department_id,
                'parent_department_id': parent_id,
            })
        self._fire_promotion(promoted, company_id, manager_id, department_id)
        return department

    # ============== Delete ==============

    def delete(self, department_id, company_id) -> bool:
        """Soft-delete an empty department and drop its closure rows."""
        def _work(cursor):
            _active_department(cursor, department_id, company_id)
            cursor.execute('''
                SELECT COUNT(*) AS count FROM departments
                WHERE parent_department_id = %s AND deleted_at IS NULL
            ''', (department_id,))
            if cursor.fetchone()['count'] > 0:
                raise ValueError('Cannot delete a department that has sub-departments')
            cursor.execute('''
                SELECT COUNT(*) AS count FROM department_teams WHERE department_id = %s
            ''', (department_id,))
            if cursor.fetchone()['count'] > 0:
                raise ValueError('Cannot delete a department that still has teams')

            cursor.execute('''
                UPDATE departments SET deleted_at = NOW(), updated_at = NOW() WHERE id = %s
            ''', (department_id,))
            self._hierarchy.unindex_department(cursor, department_id)
            return True

        deleted = self.execute_many(_work, lock_key=hierarchy_lock_key(company_id))
        logger.info(f'Department {department_id} deleted from company {company_id}')
        hooks.fire('department.deleted', {'company_id': company_id, 'department_id': department_id})
        return deleted

    # ============== Team links ==============

    def move_team(self, team_id, department_id, company_id) -> bool:
        """Link a team to a department, replacing any previous link."""
        def _work(cursor):
            _check_teams(cursor, [team_id], company_id)
            _active_department(cursor, department_id, company_id)
            _link_teams(cursor, department_id, [team_id])
            return True
        return self.execute_many(_work, lock_key=hierarchy_lock_key(company_id))

    def remove_team(self, team_id, company_id) -> bool:
        """Unlink a team from its department. Returns False if it had none."""
        def _work(cursor):
            _check_teams(cursor, [team_id], company_id)
            cursor.execute('DELETE FROM department_teams WHERE team_id = %s', (team_id,))
            return cursor.rowcount > 0
        return self.execute_many(_work, lock_key=hierarchy_lock_key(company_id))

    # ============== Manager promotion ==============

    def _promote_manager(self, cursor, company_id, manager_id, department_id) -> bool:
        """Give a lead/member manager the system manager role on the department.

        Admins and existing managers keep their role. The promoted assignment
        uses the role's default limit (override cleared).
        """
        if not manager_id:
            return False
        current = self._assignment_repo.current_role_type_in(cursor, manager_id)
        if current not in (RoleType.LEAD.value, RoleType.MEMBER.value):
            return False
        manager_role = self._role_repo.get_system_role_in(cursor, company_id, RoleType.MANAGER)
        if not manager_role:
            logger.warning(f'Company {company_id} has no manager system role; {manager_id} not promoted')
            return False
        self._assignment_repo.replace_in(
            cursor, manager_id, manager_role['id'], ScopeType.DEPARTMENT.value, department_id,
        )
        return True

    def _fire_promotion(self, promoted: bool, company_id, user_id, department_id):
        if not promoted:
            return
        logger.info(f'User {user_id} promoted to manager of department {department_id}')
        hooks.fire('role.manager_promoted', {
            'company_id': company_id, 'user_id': user_id, 'department_id': department_id,
        })
