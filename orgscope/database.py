import os
import logging
import threading
import time
from contextlib import contextmanager

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor


logger = logging.getLogger('orgscope.database')

# PostgreSQL connection - DATABASE_URL is required
DATABASE_URL = os.environ.get('DATABASE_URL')

if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required. Set it to your PostgreSQL connection string.")

_connection_pool = None
_pool_lock = threading.Lock()

POOL_MIN_CONN = int(os.environ.get('DB_POOL_MIN_CONN', '2'))
POOL_MAX_CONN = int(os.environ.get('DB_POOL_MAX_CONN', '8'))
POOL_GETCONN_TIMEOUT = int(os.environ.get('DB_POOL_TIMEOUT', '10'))


def _get_pool():
    """Get or create the connection pool (lazy initialization, thread-safe)."""
    global _connection_pool
    if _connection_pool is None:
        with _pool_lock:
            if _connection_pool is None:
                _connection_pool = pool.ThreadedConnectionPool(
                    minconn=POOL_MIN_CONN,
                    maxconn=POOL_MAX_CONN,
                    dsn=DATABASE_URL,
                    keepalives=1,
                    keepalives_idle=30,
                    keepalives_interval=10,
                    keepalives_count=5,
                    connect_timeout=5,
                )
                logger.info(f'Connection pool created: min={POOL_MIN_CONN}, max={POOL_MAX_CONN}')
    return _connection_pool


def _getconn_with_timeout(timeout=None):
    """Get a pooled connection, giving up after `timeout` seconds.

    ThreadedConnectionPool.getconn() raises immediately when the pool is
    exhausted, so we poll until a connection frees up or the deadline passes.
    """
    if timeout is None:
        timeout = POOL_GETCONN_TIMEOUT

    deadline = time.monotonic() + timeout
    while True:
        try:
            return _get_pool().getconn()
        except pool.PoolError:
            if time.monotonic() >= deadline:
                raise psycopg2.OperationalError(
                    f"Connection pool exhausted, timed out after {timeout}s waiting for a connection"
                )
            time.sleep(0.1)


def get_db():
    """Get a healthy PostgreSQL connection from the pool in autocommit mode.

    Stale connections (closed by the server) are discarded and replaced,
    up to 3 attempts.
    """
    max_retries = 3
    last_error = None

    for attempt in range(max_retries):
        conn = _getconn_with_timeout()
        try:
            with conn.cursor() as cur:
                cur.execute('SELECT 1')
            conn.rollback()
            conn.autocommit = True
            return conn
        except (psycopg2.OperationalError, psycopg2.InterfaceError, psycopg2.DatabaseError) as e:
            last_error = e
            logger.warning(f'Stale connection discarded (attempt {attempt + 1}/{max_retries}): {e}')
            _get_pool().putconn(conn, close=True)

    raise psycopg2.OperationalError(f"Failed to get valid connection after {max_retries} attempts: {last_error}")


def release_db(conn):
    """Return connection to pool, closing it instead if it is broken."""
    if not conn or not _connection_pool:
        return
    if conn.closed:
        _connection_pool.putconn(conn, close=True)
        return
    try:
        conn.autocommit = False
    except psycopg2.Error as e:
        logger.warning(f'Closing unusable connection on release: {e}')
        _connection_pool.putconn(conn, close=True)
        return
    _connection_pool.putconn(conn)


@contextmanager
def transaction():
    """Context manager for atomic database transactions.

    Usage:
        with transaction() as conn:
            cursor = get_cursor(conn)
            cursor.execute('INSERT INTO ...')
            cursor.execute('UPDATE ...')
        # Commits on success, rolls back on exception
    """
    conn = get_db()
    try:
        conn.autocommit = False
        yield conn
        conn.commit()
        logger.debug('Transaction committed successfully')
    except Exception as e:
        conn.rollback()
        logger.warning(f'Transaction rolled back: {e}')
        raise
    finally:
        release_db(conn)


def get_cursor(conn):
    """Get cursor with dict row factory."""
    return conn.cursor(cursor_factory=RealDictCursor)


def init_db():
    """Create tables, indexes and constraints if the schema is missing.

    Delegates to migrations.init_schema.create_schema(). Skips when the
    closure table already exists so worker restarts stay cheap.
    """
    conn = get_db()
    cursor = get_cursor(conn)
    try:
        cursor.execute("""
            SELECT EXISTS (
                SELECT FROM information_schema.tables
                WHERE table_schema = 'public' AND table_name = 'department_hierarchy'
            )
        """)
        if cursor.fetchone()['exists']:
            logger.info('Database schema already initialized, skipping init_db()')
            return

        from migrations.init_schema import create_schema
        conn.autocommit = False
        create_schema(conn, cursor)
        conn.commit()
        logger.info('Database schema initialized successfully')
    except Exception:
        conn.rollback()
        raise
    finally:
        release_db(conn)


def dict_from_row(row):
    """Convert a database row to a dictionary with ISO-formatted dates."""
    if row is None:
        return None
    result = dict(row)
    for key, value in result.items():
        if hasattr(value, 'isoformat'):
            result[key] = value.isoformat()
    return result
