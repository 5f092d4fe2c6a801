"""
Database connection and session management for the Pinfall backend
"""
from sqlalchemy import JSON, create_engine, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, sessionmaker
from pinfall.core.config import settings


def build_engine(url: str, echo: bool = False):
    """Create an engine, applying pool settings only where the dialect supports them"""
    if not url.startswith("sqlite"):
        return create_engine(
            url,
            pool_pre_ping=True,      # Test connections before using
            pool_size=10,            # Connection pool size
            max_overflow=20,         # Overflow connections allowed
            echo=echo,
        )

    # SQLite serializes writers; the busy timeout lets racing writers queue
    engine = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": 30},
        echo=echo,
    )

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        """SQLite ships with foreign keys off; ON DELETE CASCADE needs them"""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


# Create database engine with connection pooling
engine = build_engine(settings.SQLALCHEMY_DATABASE_URI, echo=settings.LOG_LEVEL.upper() == "DEBUG")

# Session factory for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# JSON column type, stored as JSONB on PostgreSQL
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Base class for all models
Base = declarative_base()


def get_db():
    """
    Dependency for getting database session in endpoints

    Usage in FastAPI endpoints:
        def my_endpoint(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Initialize database tables"""
    import pinfall.models  # noqa: F401  (registers every table on Base.metadata)
    Base.metadata.create_all(bind=engine)
