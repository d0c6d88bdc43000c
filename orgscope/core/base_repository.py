"""Base Repository - connection handling shared by every repository.

Provides query_one(), query_all(), query_column(), execute() and
execute_many() which take care of get_db()/get_cursor()/release_db()
and commit/rollback.

Usage:
    class TeamRepository(BaseRepository):
        def get(self, team_id):
            return self.query_one('SELECT * FROM teams WHERE id = %s', (team_id,))

        def move(self, team_id, department_id):
            def _work(cursor):
                cursor.execute('DELETE FROM department_teams WHERE team_id = %s', (team_id,))
                cursor.execute('INSERT INTO department_teams ...')
            return self.execute_many(_work, lock_key=f'department_hierarchy:{company_id}')
"""

import logging

from database import get_db, get_cursor, release_db, dict_from_row

logger = logging.getLogger('orgscope.core.base_repository')


class BaseRepository:

    def query_one(self, sql, params=None):
        """Execute a SELECT and return a single row as dict, or None."""
        conn = get_db()
        try:
            cursor = get_cursor(conn)
            cursor.execute(sql, params or ())
            row = cursor.fetchone()
            return dict_from_row(row) if row else None
        finally:
            release_db(conn)

    def query_all(self, sql, params=None):
        """Execute a SELECT and return all rows as list of dicts."""
        conn = get_db()
        try:
            cursor = get_cursor(conn)
            cursor.execute(sql, params or ())
            return [dict_from_row(r) for r in cursor.fetchall()]
        finally:
            release_db(conn)

    def query_column(self, sql, params=None):
        """Execute a SELECT and return the first column of every row."""
        conn = get_db()
        try:
            cursor = get_cursor(conn)
            cursor.execute(sql, params or ())
            return [next(iter(r.values())) for r in cursor.fetchall()]
        finally:
            release_db(conn)

    def execute(self, sql, params=None, returning=False):
        """Execute an INSERT/UPDATE/DELETE with auto-commit.

        Args:
            sql: SQL statement
            params: Query parameters
            returning: If True, fetchone() and return dict. If False, return rowcount.

        Returns:
            dict if returning=True, else int (rowcount)
        """
        conn = get_db()
        try:
            cursor = get_cursor(conn)
            cursor.execute(sql, params or ())
            if returning:
                result = cursor.fetchone()
                conn.commit()
                return dict_from_row(result) if result else None
            conn.commit()
            return cursor.rowcount
        except Exception:
            conn.rollback()
            raise
        finally:
            release_db(conn)

    def execute_many(self, callback, lock_key=None):
        """Execute multiple statements in a single transaction.

        Args:
            callback: Function that receives (cursor) and returns a result.
                      All statements within callback share one transaction.
            lock_key: Optional name of a transaction-scoped advisory lock taken
                      before the callback runs. Writers sharing a key are
                      serialized until commit or rollback.

        Returns:
            Whatever callback returns
        """
        conn = get_db()
        try:
            conn.autocommit = False
            cursor = get_cursor(conn)
            if lock_key:
                cursor.execute('SELECT pg_advisory_xact_lock(hashtext(%s))', (lock_key,))
            result = callback(cursor)
            conn.commit()
            return result
        except Exception as e:
            conn.rollback()
            logger.warning(f'Transaction rolled back ({lock_key or "no lock"}): {e}')
            raise
        finally:
            release_db(conn)
