"""Team Repository - team and membership mutations."""
import logging
from typing import Optional

from psycopg2.extras import execute_values

from core.base_repository import BaseRepository
from core.exceptions import NotFoundError
from .hierarchy_repository import hierarchy_lock_key

logger = logging.getLogger('orgscope.core.organization.team_repository')


def _active_team(cursor, team_id, company_id) -> dict:
    cursor.execute('''
        SELECT * FROM teams WHERE id = %s AND company_id = %s AND deleted_at IS NULL
    ''', (team_id, company_id))
    row = cursor.fetchone()
    if not row:
        raise NotFoundError('team', team_id)
    return row


def _check_company_users(cursor, user_ids: list, company_id):
    cursor.execute('''
        SELECT id FROM users
        WHERE id = ANY(%s::uuid[]) AND company_id = %s AND deleted_at IS NULL
    ''', (list(user_ids), company_id))
    found = {r['id'] for r in cursor.fetchall()}
    missing = [u for u in user_ids if u not in found]
    if missing:
        raise ValueError(f"Some users do not belong to your company: {', '.join(map(str, missing))}")


class TeamRepository(BaseRepository):
    """Repository for team data access operations."""

    def get(self, team_id, company_id) -> Optional[dict]:
        """Get a team with its members and department link."""
        team = self.query_one('''
            SELECT t.*, dt.department_id, u.name AS team_lead_name
            FROM teams t
            LEFT JOIN department_teams dt ON dt.team_id = t.id
            LEFT JOIN users u ON u.id = t.team_lead_user_id
            WHERE t.id = %s AND t.company_id = %s AND t.deleted_at IS NULL
        ''', (team_id, company_id))
        if team:
            team['members'] = self.query_all('''
                SELECT u.id, u.name, u.email, tm.joined_at
                FROM team_members tm
                JOIN users u ON u.id = tm.user_id AND u.deleted_at IS NULL
                WHERE tm.team_id = %s
                ORDER BY u.name
            ''', (team_id,))
        return team

    def create(self, company_id, name: str, member_ids: list, lead_id=None,
               location: str = None, description: str = None) -> dict:
        """Create a team with its members. The lead defaults to the first member."""
        name = (name or '').strip()
        if not name:
            raise ValueError('Team name is required')
        member_ids = list(dict.fromkeys(member_ids or []))
        if not member_ids:
            raise ValueError('A team needs at least one member')
        if lead_id and lead_id not in member_ids:
            raise ValueError('Team lead must be one of the selected members')
        lead_id = lead_id or member_ids[0]

        def _work(cursor):
            _check_company_users(cursor, member_ids, company_id)
            cursor.execute('''
                SELECT id FROM teams WHERE company_id = %s AND name = %s AND deleted_at IS NULL
            ''', (company_id, name))
            if cursor.fetchone():
                raise ValueError(f"Team '{name}' already exists")

            cursor.execute('''
                INSERT INTO teams (company_id, name, description, location, team_lead_user_id)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING *
            ''', (company_id, name, description, location, lead_id))
            team = dict(cursor.fetchone())
            execute_values(cursor, '''
                INSERT INTO team_members (team_id, user_id) VALUES %s
            ''', [(team['id'], user_id) for user_id in member_ids])
            return team

        team = self.execute_many(_work)
        logger.info(f"Team created: {name} ({team['id']}) with {len(member_ids)} members")
        return team

    def update(self, team_id, company_id, name: str = None, description: str = None,
               location: str = None) -> bool:
        """Update team details. Returns True if updated."""
        def _work(cursor):
            team = _active_team(cursor, team_id, company_id)
            updates, params = [], []
            if name is not None and name.strip() != team['name']:
                cursor.execute('''
                    SELECT id FROM teams
                    WHERE company_id = %s AND name = %s AND deleted_at IS NULL AND id <> %s
                ''', (company_id, name.strip(), team_id))
                if cursor.fetchone():
                    raise ValueError(f"Team '{name.strip()}' already exists")
                updates.append('name = %s')
                params.append(name.strip())
            if description is not None:
                updates.append('description = %s')
                params.append(description)
            if location is not None:
                updates.append('location = %s')
                params.append(location)
            if not updates:
                return False
            params.append(team_id)
            cursor.execute(
                f"UPDATE teams SET {', '.join(updates)}, updated_at = NOW() WHERE id = %s", params)
            return cursor.rowcount > 0
        return self.execute_many(_work)

    def add_members(self, team_id, company_id, user_ids: list) -> int:
        """Add users to a team. Rejects users who are already members."""
        user_ids = list(dict.fromkeys(user_ids or []))
        if not user_ids:
            raise ValueError('No users given')

        def _work(cursor):
            _active_team(cursor, team_id, company_id)
            _check_company_users(cursor, user_ids, company_id)
            cursor.execute('''
                SELECT user_id FROM team_members WHERE team_id = %s AND user_id = ANY(%s::uuid[])
            ''', (team_id, user_ids))
            if cursor.fetchall():
                raise ValueError('Some users are already members of this team')
            execute_values(cursor, '''
                INSERT INTO team_members (team_id, user_id) VALUES %s
            ''', [(team_id, user_id) for user_id in user_ids])
            return len(user_ids)
        return self.execute_many(_work)

    def remove_member(self, team_id, company_id, user_id) -> bool:
        """Remove a member. The current lead cannot be removed."""
        def _work(cursor):
            team = _active_team(cursor, team_id, company_id)
            if team['team_lead_user_id'] == user_id:
                raise ValueError('Cannot remove team lead. Assign a new team lead first.')
            cursor.execute('''
                DELETE FROM team_members WHERE team_id = %s AND user_id = %s
            ''', (team_id, user_id))
            return cursor.rowcount > 0
        return self.execute_many(_work)

    def set_lead(self, team_id, company_id, user_id) -> bool:
        """Make an existing member the team lead."""
        def _work(cursor):
            _active_team(cursor, team_id, company_id)
            cursor.execute('''
                SELECT 1 AS found FROM team_members WHERE team_id = %s AND user_id = %s
            ''', (team_id, user_id))
            if not cursor.fetchone():
                raise ValueError('Team lead must be a member of the team')
            cursor.execute('''
                UPDATE teams SET team_lead_user_id = %s, updated_at = NOW() WHERE id = %s
            ''', (user_id, team_id))
            return cursor.rowcount > 0
        return self.execute_many(_work)

    def dissolve(self, team_id, company_id) -> bool:
        """Soft-delete a team, drop its members and its department link."""
        def _work(cursor):
            _active_team(cursor, team_id, company_id)
            cursor.execute('UPDATE teams SET deleted_at = NOW() WHERE id = %s', (team_id,))
            cursor.execute('DELETE FROM team_members WHERE team_id = %s', (team_id,))
            cursor.execute('DELETE FROM department_teams WHERE team_id = %s', (team_id,))
            return True
        result = self.execute_many(_work, lock_key=hierarchy_lock_key(company_id))
        logger.info(f'Team {team_id} dissolved in company {company_id}')
        return result
