"""Database configuration and initialization."""
from contextlib import contextmanager

from sqlalchemy import BigInteger, Integer, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from tableorders.exceptions import TableOrdersError, TransactionFailure

# Primary key type: BIGINT, but INTEGER on SQLite so rowid autoincrement works
IdType = BigInteger().with_variant(Integer, 'sqlite')

# Create SQLAlchemy base
Base = declarative_base()

# Global session and engine
engine = None
db_session = None


def _engine_options(app, database_uri):
    options = {'echo': app.config.get('SQLALCHEMY_ECHO', False)}
    if database_uri.startswith('sqlite'):
        # One shared connection so an in-memory database survives across sessions
        options['connect_args'] = {'check_same_thread': False}
        options['poolclass'] = StaticPool
    else:
        options.update(pool_pre_ping=True, pool_size=10, max_overflow=20)
    return options


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine = create_engine(database_uri, **_engine_options(app, database_uri))

    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )

    Base.query = db_session.query_property()

    if app.config.get('AUTO_CREATE_SCHEMA'):
        create_schema()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_schema():
    """Create every table known to the models package."""
    import tableorders.models  # noqa: F401  (registers mappers on Base)
    Base.metadata.create_all(bind=engine)


def drop_schema():
    import tableorders.models  # noqa: F401
    Base.metadata.drop_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session


@contextmanager
def transaction(session, operation='write'):
    """
    Run one logical write as a single atomic transaction.

    Commits on success. Domain errors roll back and propagate unchanged;
    database errors roll back and surface as TransactionFailure, so no
    partial state is ever visible to later reads.
    """
    try:
        yield session
        session.commit()
    except TableOrdersError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        raise TransactionFailure(operation, str(getattr(e, 'orig', None) or e)) from e
    except Exception:
        session.rollback()
        raise
