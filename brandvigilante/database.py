from datetime import datetime, timezone
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import URL
from sqlalchemy.orm import declarative_base, sessionmaker

from brandvigilante.core import config


def build_database_url() -> str | URL:
    if config.DATABASE_URL:
        return config.DATABASE_URL
    return URL.create(
        config.DB_DRIVER,
        username=config.DB_USER or None,
        password=config.DB_PASSWORD or None,
        host=config.DB_HOST,
        port=config.DB_PORT,
        database=config.DB_NAME,
    )


def _engine_options(url: str | URL) -> dict:
    if str(url).startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_size": config.DB_POOL_SIZE, "pool_pre_ping": True}


DATABASE_URL = build_database_url()

engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_user_schema_checked = False


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_user_schema() -> None:
    """Add the columns that older ``users`` tables were created without."""
    global _user_schema_checked

    if _user_schema_checked:
        return

    with _schema_lock:
        if _user_schema_checked:
            return

        inspector = inspect(engine)

        if 'users' not in inspector.get_table_names():
            _user_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('users')}
        migration_steps = [
            ('first_name', 'ALTER TABLE users ADD COLUMN first_name VARCHAR(50)'),
            ('last_name', 'ALTER TABLE users ADD COLUMN last_name VARCHAR(50)'),
            ('email_verified', 'ALTER TABLE users ADD COLUMN email_verified BOOLEAN NOT NULL DEFAULT FALSE'),
            ('google_user_id', 'ALTER TABLE users ADD COLUMN google_user_id VARCHAR(255)'),
            ('updated_at', 'ALTER TABLE users ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE UNIQUE INDEX IF NOT EXISTS idx_users_google_user_id ON users(google_user_id)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_user_session_expires ON user_session(expires_at)')
            )

        _user_schema_checked = True
