"""Organization Repository - read accessors over the organization graph.

Companies, users, teams, team memberships, department-team links and
listing ownership. Every read filters out soft-deleted rows. Also serves
as the membership lookup the scope checker joins through.
"""
from typing import Optional

from core.base_repository import BaseRepository


class OrganizationRepository(BaseRepository):
    """Repository for organization graph lookups."""

    # ============== Companies & Users ==============

    def get_company(self, company_id) -> Optional[dict]:
        return self.query_one('SELECT * FROM companies WHERE id = %s', (company_id,))

    def get_user(self, user_id) -> Optional[dict]:
        """Get an active user by ID (no password hash)."""
        return self.query_one('''
            SELECT id, company_id, email, name, status, created_at
            FROM users
            WHERE id = %s AND deleted_at IS NULL
        ''', (user_id,))

    def get_company_user(self, user_id, company_id) -> Optional[dict]:
        """Get a user only if they are an active member of the company."""
        return self.query_one('''
            SELECT id, company_id, email, name, status
            FROM users
            WHERE id = %s AND company_id = %s AND deleted_at IS NULL AND status = 'active'
        ''', (user_id, company_id))

    def get_company_user_ids(self, company_id, user_ids: list) -> set:
        """Subset of `user_ids` that are active users of the company."""
        if not user_ids:
            return set()
        return set(self.query_column('''
            SELECT id FROM users
            WHERE company_id = %s AND id = ANY(%s::uuid[])
              AND deleted_at IS NULL AND status = 'active'
        ''', (company_id, list(user_ids))))

    def list_users(self, company_id, user_ids: set | None = None) -> list[dict]:
        """Company users, optionally restricted to an id set."""
        if user_ids is None:
            return self.query_all('''
                SELECT id, email, name, status FROM users
                WHERE company_id = %s AND deleted_at IS NULL
                ORDER BY name
            ''', (company_id,))
        if not user_ids:
            return []
        return self.query_all('''
            SELECT id, email, name, status FROM users
            WHERE company_id = %s AND id = ANY(%s::uuid[]) AND deleted_at IS NULL
            ORDER BY name
        ''', (company_id, list(user_ids)))

    # ============== Departments ==============

    def get_department(self, department_id, company_id) -> Optional[dict]:
        """Get an active department of the company, with its manager's name."""
        return self.query_one('''
            SELECT d.*, u.name AS manager_name
            FROM departments d
            LEFT JOIN users u ON u.id = d.manager_user_id
            WHERE d.id = %s AND d.company_id = %s AND d.deleted_at IS NULL
        ''', (department_id, company_id))

    def list_departments(self, company_id, department_ids: set | None = None) -> list[dict]:
        """Departments ordered by path, optionally restricted to an id set."""
        if department_ids is None:
            return self.query_all('''
                SELECT d.*, u.name AS manager_name
                FROM departments d
                LEFT JOIN users u ON u.id = d.manager_user_id
                WHERE d.company_id = %s AND d.deleted_at IS NULL
                ORDER BY d.path
            ''', (company_id,))
        if not department_ids:
            return []
        return self.query_all('''
            SELECT d.*, u.name AS manager_name
            FROM departments d
            LEFT JOIN users u ON u.id = d.manager_user_id
            WHERE d.company_id = %s AND d.id = ANY(%s::uuid[]) AND d.deleted_at IS NULL
            ORDER BY d.path
        ''', (company_id, list(department_ids)))

    def users_in_departments(self, department_ids) -> set:
        """Users belonging to any team linked to one of the departments."""
        if not department_ids:
            return set()
        return set(self.query_column('''
            SELECT DISTINCT tm.user_id
            FROM department_teams dt
            JOIN teams t ON t.id = dt.team_id AND t.deleted_at IS NULL
            JOIN team_members tm ON tm.team_id = dt.team_id
            WHERE dt.department_id = ANY(%s::uuid[])
        ''', (list(department_ids),)))

    # ============== Teams ==============

    def get_team(self, team_id, company_id) -> Optional[dict]:
        return self.query_one('''
            SELECT t.*, dt.department_id
            FROM teams t
            LEFT JOIN department_teams dt ON dt.team_id = t.id
            WHERE t.id = %s AND t.company_id = %s AND t.deleted_at IS NULL
        ''', (team_id, company_id))

    def list_teams(self, company_id) -> list[dict]:
        return self.query_all('''
            SELECT t.*, dt.department_id,
                   (SELECT COUNT(*) FROM team_members tm WHERE tm.team_id = t.id) AS member_count
            FROM teams t
            LEFT JOIN department_teams dt ON dt.team_id = t.id
            WHERE t.company_id = %s AND t.deleted_at IS NULL
            ORDER BY t.name
        ''', (company_id,))

    def get_team_lead_id(self, team_id):
        row = self.query_one('''
            SELECT team_lead_user_id FROM teams WHERE id = %s AND deleted_at IS NULL
        ''', (team_id,))
        return row['team_lead_user_id'] if row else None

    def team_member_ids(self, team_id) -> set:
        return set(self.query_column(
            'SELECT user_id FROM team_members WHERE team_id = %s', (team_id,)))

    # ============== Scope lookups ==============

    def department_of_team(self, team_id):
        """Department the team is linked to, or None."""
        row = self.query_one('''
            SELECT dt.department_id
            FROM department_teams dt
            JOIN departments d ON d.id = dt.department_id AND d.deleted_at IS NULL
            WHERE dt.team_id = %s
        ''', (team_id,))
        return row['department_id'] if row else None

    def teams_of_user(self, user_id) -> set:
        return set(self.query_column('''
            SELECT tm.team_id FROM team_members tm
            JOIN teams t ON t.id = tm.team_id AND t.deleted_at IS NULL
            WHERE tm.user_id = %s
        ''', (user_id,)))

    def departments_of_user(self, user_id) -> set:
        """Departments linked to any of the user's teams."""
        return set(self.query_column('''
            SELECT DISTINCT dt.department_id
            FROM team_members tm
            JOIN teams t ON t.id = tm.team_id AND t.deleted_at IS NULL
            JOIN department_teams dt ON dt.team_id = tm.team_id
            WHERE tm.user_id = %s
        ''', (user_id,)))

    def team_of_listing(self, listing_id):
        row = self.query_one(
            'SELECT team_id FROM material_listings WHERE id = %s', (listing_id,))
        return row['team_id'] if row else None
