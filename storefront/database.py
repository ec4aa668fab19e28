"""Database configuration and initialization."""
import logging

from sqlalchemy import BigInteger, Integer, create_engine
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Create SQLAlchemy base
Base = declarative_base()

# Global session and engine
engine = None
db_session = None

# Schema versions stamped by `flask init-db` / `flask stamp-schema`.
# 1: base tables
# 2: order status + SMS sent-flags
CURRENT_SCHEMA_VERSION = 2
SCHEMA_FEATURES = {
    'order_status': 2,
    'sms_flags': 2,
}


def _engine_options(database_uri, echo):
    if database_uri.startswith('sqlite'):
        # Single shared connection so in-memory databases survive across sessions
        return {
            'echo': echo,
            'poolclass': StaticPool,
            'connect_args': {'check_same_thread': False},
        }
    return {
        'echo': echo,
        'pool_pre_ping': True,  # Enable connection health checks
        'pool_size': 10,
        'max_overflow': 20,
    }


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine = create_engine(
        database_uri,
        **_engine_options(database_uri, app.config.get('SQLALCHEMY_ECHO', False))
    )

    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )

    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def get_session():
    """Get database session."""
    return db_session


def create_schema(version=CURRENT_SCHEMA_VERSION):
    """Create all tables and stamp the schema version."""
    # Import models so every table is registered on Base.metadata
    from storefront import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    stamp_schema_version(version)


def drop_schema():
    """Drop all tables (tests and local resets only)."""
    from storefront import models  # noqa: F401

    Base.metadata.drop_all(bind=engine)


def stamp_schema_version(version):
    """Record the schema version the database has been migrated to."""
    from storefront.models import SchemaVersion

    session = get_session()
    row = session.query(SchemaVersion).filter_by(id=SchemaVersion.SINGLETON_ID).first()
    if row is None:
        row = SchemaVersion(id=SchemaVersion.SINGLETON_ID, version=version)
        session.add(row)
    else:
        row.version = version
    session.commit()
    logger.info(f"[DB] Schema stamped at version {version}")


def get_schema_version(session=None):
    """Return the stamped schema version, 0 when the database was never stamped."""
    from storefront.models import SchemaVersion

    session = session or get_session()
    row = session.query(SchemaVersion).filter_by(id=SchemaVersion.SINGLETON_ID).first()
    return row.version if row else 0


def schema_supports(feature, session=None):
    """Check whether the stamped schema includes an optional feature."""
    required = SCHEMA_FEATURES[feature]
    return get_schema_version(session) >= required


# Primary key type: BIGINT on Postgres, INTEGER on SQLite so rowid autoincrement works
IdType = BigInteger().with_variant(Integer, 'sqlite')
