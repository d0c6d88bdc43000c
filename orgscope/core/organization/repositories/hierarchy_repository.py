"""Hierarchy Repository - department closure table access.

Read side answers containment questions from department_hierarchy with
single indexed lookups. Write side takes the caller's cursor so closure
maintenance always shares the transaction (and the per-company advisory
lock) of the structural change that triggered it.
"""

import logging

from psycopg2.extras import execute_values

from core.base_repository import BaseRepository
from core.config import get_config
from core.exceptions import CycleRejectedError, NotFoundError
from core.organization.hierarchy import (
    closure_rows, plan_subtree_rebuild, would_create_cycle,
)

logger = logging.getLogger('orgscope.core.organization.hierarchy_repository')


def hierarchy_lock_key(company_id) -> str:
    """Advisory lock name serializing structural writes within one company."""
    return f'department_hierarchy:{company_id}'


def depth_limit_from_settings(settings: dict | None) -> int:
    default = get_config().MAX_HIERARCHY_DEPTH
    if not settings or settings.get('max_hierarchy_depth') in (None, ''):
        return default
    return int(settings['max_hierarchy_depth'])


class HierarchyRepository(BaseRepository):

    # ============== Reads ==============

    def descendants_of(self, department_id) -> set:
        """All department ids under `department_id`, including itself."""
        return set(self.query_column('''
            SELECT descendant_id FROM department_hierarchy WHERE ancestor_id = %s
        ''', (department_id,)))

    def ancestors_of(self, department_id) -> list:
        """Ancestor ids nearest first, excluding the department itself."""
        return self.query_column('''
            SELECT ancestor_id FROM department_hierarchy
            WHERE descendant_id = %s AND depth > 0
            ORDER BY depth
        ''', (department_id,))

    def is_ancestor(self, ancestor_id, descendant_id) -> bool:
        """True if `ancestor_id` is a proper ancestor of `descendant_id`."""
        row = self.query_one('''
            SELECT 1 AS found FROM department_hierarchy
            WHERE ancestor_id = %s AND descendant_id = %s AND depth > 0
        ''', (ancestor_id, descendant_id))
        return row is not None

    def get_node(self, department_id) -> dict | None:
        """Adjacency row (parent pointer, manager) of an active department."""
        return self.query_one('''
            SELECT id, company_id, name, parent_department_id, level, path, manager_user_id
            FROM departments
            WHERE id = %s AND deleted_at IS NULL
        ''', (department_id,))

    def max_depth(self, company_id) -> int:
        """Hierarchy depth limit for a company (settings override, else config)."""
        row = self.query_one('SELECT settings FROM companies WHERE id = %s', (company_id,))
        return depth_limit_from_settings(row['settings'] if row else None)

    # ============== Writes (caller's transaction) ==============

    def company_max_depth(self, cursor, company_id) -> int:
        cursor.execute('SELECT settings FROM companies WHERE id = %s', (company_id,))
        row = cursor.fetchone()
        return depth_limit_from_settings(row['settings'] if row else None)

    def contains_in(self, cursor, ancestor_id, descendant_id) -> bool:
        """is_ancestor() read inside the caller's transaction."""
        cursor.execute('''
            SELECT 1 AS found FROM department_hierarchy
            WHERE ancestor_id = %s AND descendant_id = %s AND depth > 0
        ''', (ancestor_id, descendant_id))
        return cursor.fetchone() is not None

    def index_new_department(self, cursor, department_id, parent_id=None) -> list[tuple]:
        """Insert the closure rows of a freshly created department."""
        ancestry = []
        if parent_id:
            cursor.execute('''
                SELECT ancestor_id, depth FROM department_hierarchy WHERE descendant_id = %s
            ''', (parent_id,))
            ancestry = [(r['ancestor_id'], r['depth']) for r in cursor.fetchall()]
            if not ancestry:
                raise NotFoundError('department', parent_id)

        rows = closure_rows(department_id, ancestry)
        execute_values(cursor, '''
            INSERT INTO department_hierarchy (ancestor_id, descendant_id, depth) VALUES %s
        ''', rows)
        logger.debug(f'Indexed department {department_id}: {len(rows)} closure rows')
        return rows

    def rebuild_subtree(self, cursor, department_id, new_parent_id, max_depth: int):
        """Re-parent (or re-path) a department and rebuild its subtree's closure.

        Rejects cycles before writing anything. Deletes every closure row whose
        descendant lies in the subtree, then rewrites parent pointer, level,
        path and closure rows for the department and all descendants.

        Returns:
            the SubtreePlan that was applied
        """
        cursor.execute('''
            SELECT descendant_id FROM department_hierarchy WHERE ancestor_id = %s
        ''', (department_id,))
        subtree_ids = [r['descendant_id'] for r in cursor.fetchall()]
        if department_id not in subtree_ids:
            subtree_ids.append(department_id)

        if would_create_cycle(department_id, new_parent_id, subtree_ids):
            raise CycleRejectedError(department_id, new_parent_id)

        cursor.execute('''
            SELECT id, name, parent_department_id FROM departments
            WHERE id = ANY(%s::uuid[]) AND deleted_at IS NULL
        ''', (subtree_ids,))
        departments = {r['id']: r for r in cursor.fetchall()}
        if department_id not in departments:
            raise NotFoundError('department', department_id)

        parent = None
        ancestry = []
        if new_parent_id:
            cursor.execute('''
                SELECT id, level, path FROM departments
                WHERE id = %s AND deleted_at IS NULL
            ''', (new_parent_id,))
            parent = cursor.fetchone()
            if not parent:
                raise NotFoundError('department', new_parent_id)
            cursor.execute('''
                SELECT ancestor_id, depth FROM department_hierarchy WHERE descendant_id = %s
            ''', (new_parent_id,))
            ancestry = [(r['ancestor_id'], r['depth']) for r in cursor.fetchall()]

        plan = plan_subtree_rebuild(department_id, departments, parent, ancestry)
        if plan.max_level > max_depth:
            raise ValueError(
                f'Hierarchy depth limit is {max_depth} levels; this change would reach {plan.max_level}'
            )

        cursor.execute('''
            DELETE FROM department_hierarchy WHERE descendant_id = ANY(%s::uuid[])
        ''', (list(departments),))
        cursor.execute('''
            UPDATE departments SET parent_department_id = %s, updated_at = NOW() WHERE id = %s
        ''', (new_parent_id, department_id))
        for node in plan.nodes:
            cursor.execute('''
                UPDATE departments SET level = %s, path = %s, updated_at = NOW() WHERE id = %s
            ''', (node.level, node.path, node.department_id))
        execute_values(cursor, '''
            INSERT INTO department_hierarchy (ancestor_id, descendant_id, depth) VALUES %s
        ''', plan.closure)

        logger.debug(
            f'Rebuilt closure for department {department_id}: '
            f'{len(plan.nodes)} departments, {len(plan.closure)} rows'
        )
        return plan

    def unindex_department(self, cursor, department_id) -> int:
        """Remove every closure row mentioning a (leaf) department."""
        cursor.execute('''
            DELETE FROM department_hierarchy
            WHERE descendant_id = %s OR ancestor_id = %s
        ''', (department_id, department_id))
        return cursor.rowcount

