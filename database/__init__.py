"""Database module for managing connections to PostgreSQL.

This module handles:
- Database creation on first start
- Database connection pool initialization
- Schema management
- Connection lifecycle

CockroachDB speaks the same wire protocol and works with the same URLs.
"""

import logging
import ssl
from typing import Optional, Dict, Any
import backoff
import asyncpg
from urllib.parse import urlparse, parse_qs

from .exceptions import DatabaseError, DatabaseSchemaError
from .lib.schema_manager import SchemaManager

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None
_schema_manager: Optional[SchemaManager] = None

# sslmode values that require an encrypted connection
SSL_MODES = ('require', 'verify-ca', 'verify-full')

def _get_ssl_context(sslmode: str) -> ssl.SSLContext:
    """Create SSL context matching the requested sslmode."""
    ssl_context = ssl.create_default_context()
    if sslmode == 'require':
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
    else:
        ssl_context.verify_mode = ssl.CERT_REQUIRED
        ssl_context.check_hostname = sslmode == 'verify-full'
    return ssl_context

def _get_connection_kwargs(db_url: str) -> Dict[str, Any]:
    """Get connection kwargs from database URL.

    Args:
        db_url: Database connection URL

    Returns:
        Dict of connection parameters
    """
    parsed = urlparse(db_url)
    params = parse_qs(parsed.query)

    kwargs: Dict[str, Any] = {}
    sslmode = params.get('sslmode', ['disable'])[0]
    if sslmode in SSL_MODES:
        kwargs['ssl'] = _get_ssl_context(sslmode)
    else:
        kwargs['ssl'] = False

    return kwargs

def _strip_query(db_url: str) -> str:
    """Remove query parameters that are handled through connection kwargs."""
    return urlparse(db_url)._replace(query='').geturl()

def _database_name(db_url: str) -> str:
    """Get the database name from a connection URL."""
    parsed = urlparse(db_url)
    db_name = parsed.path.strip('/')
    if not db_name:
        params = parse_qs(parsed.query)
        db_name = params.get('database', ['postgres'])[0]
    return db_name

@backoff.on_exception(
    backoff.expo,
    (OSError, asyncpg.exceptions.PostgresConnectionError, asyncpg.exceptions.CannotConnectNowError),
    max_tries=5
)
async def create_database_if_not_exists(db_url: str) -> None:
    """Create the database if it doesn't exist.

    Args:
        db_url: Database connection URL

    Raises:
        Exception: If database creation fails after retries
    """
    db_name = _database_name(db_url)
    if db_name == 'postgres':
        return

    # Connect to the maintenance database
    base_url = urlparse(_strip_query(db_url))._replace(path='/postgres').geturl()
    logger.info(f"Connecting to maintenance database to create {db_name} if needed")

    try:
        conn = await asyncpg.connect(base_url, **_get_connection_kwargs(db_url))
    except (asyncpg.exceptions.InvalidCatalogNameError,
            asyncpg.exceptions.InvalidAuthorizationSpecificationError):
        # No maintenance database (e.g. managed clusters); assume the target exists
        logger.info("Maintenance database not available, skipping database creation")
        return

    try:
        exists = await conn.fetchval(
            'SELECT EXISTS(SELECT 1 FROM pg_database WHERE datname = $1)',
            db_name
        )

        if not exists:
            await conn.execute(f'CREATE DATABASE "{db_name}"')
            logger.info(f"Created database {db_name}")

    except asyncpg.exceptions.InsufficientPrivilegeError as e:
        logger.warning(f"Cannot create database {db_name}: {e}")
    finally:
        await conn.close()

@backoff.on_exception(
    backoff.expo,
    (OSError, asyncpg.exceptions.PostgresConnectionError, asyncpg.exceptions.CannotConnectNowError),
    max_tries=5
)
async def init_db(db_url: Optional[str] = None, force_recreate: bool = False) -> None:
    """Initialize the database connection pool and schema.

    Args:
        db_url: Optional database URL. If not provided, will use settings.
        force_recreate: If True, drop and recreate all tables

    Raises:
        ValueError: If database URL is not provided
        DatabaseSchemaError: If the schema cannot be applied
    """
    global _pool, _schema_manager

    try:
        # Import here to avoid circular imports
        from config import settings_conf

        # Use provided URL or get from settings
        url = db_url or settings_conf.get('db_url')
        if not url:
            raise ValueError("Database URL not provided")

        # Create database if needed
        await create_database_if_not_exists(url)

        # Create connection pool
        _pool = await asyncpg.create_pool(
            _strip_query(url),
            min_size=2,          # Minimum idle connections
            max_size=20,         # Maximum connections
            max_queries=10000,   # Reset connection after this many queries
            max_inactive_connection_lifetime=300.0,  # 5 minutes
            command_timeout=60.0,  # 1 minute command timeout
            **_get_connection_kwargs(url)
        )

        # Initialize schema manager
        _schema_manager = SchemaManager(_pool)

        if force_recreate:
            logger.info("Force recreate requested. Dropping all tables...")
            async with _pool.acquire() as conn:
                await conn.execute('DROP TABLE IF EXISTS schema_version')
                await _schema_manager._drop_all_tables(conn)

        await _schema_manager.initialize()

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        if _pool:
            await _pool.close()
            _pool = None
        raise

async def get_pool() -> asyncpg.Pool:
    """Get the database connection pool.

    Returns:
        The connection pool

    Raises:
        DatabaseError: If pool hasn't been initialized
    """
    if not _pool:
        await init_db()
    if not _pool:
        raise DatabaseError("Failed to initialize database pool")
    return _pool

async def close() -> None:
    """Close the database connection pool."""
    global _pool, _schema_manager

    if _pool:
        await _pool.close()
        _pool = None
        _schema_manager = None

# Export public interface
__all__ = ['init_db', 'get_pool', 'close', 'DatabaseError', 'DatabaseSchemaError']
