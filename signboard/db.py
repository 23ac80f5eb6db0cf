from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy import text
import os

DATABASE_URL = os.getenv("SIGNAGE_DATABASE_URL", "sqlite:///./signage.db")

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()

SETTINGS_ROW_ID = 1
DEFAULT_REFRESH_INTERVAL_MINUTES = 5
DEFAULT_DURATION_SECONDS = 10


def ensure_sqlite_schema():
    """
    Lightweight runtime schema patching for SQLite.

    `Base.metadata.create_all()` won't add new columns to existing tables.
    Boards created before ordering and the security gate existed keep working
    without requiring Alembic.
    """
    if not DATABASE_URL.startswith("sqlite"):
        return

    with engine.begin() as conn:
        item_cols = conn.execute(text("PRAGMA table_info(display_item)")).fetchall()
        item_col_names = {row[1] for row in item_cols}  # (cid, name, type, notnull, dflt_value, pk)
        if item_cols:
            if "title" not in item_col_names:
                conn.execute(text("ALTER TABLE display_item ADD COLUMN title VARCHAR DEFAULT 'Untitled Announcement'"))
            if "transition" not in item_col_names:
                conn.execute(text("ALTER TABLE display_item ADD COLUMN transition VARCHAR DEFAULT 'fade'"))
            if "order_index" not in item_col_names:
                conn.execute(text("ALTER TABLE display_item ADD COLUMN order_index INTEGER DEFAULT 0"))
            conn.execute(text("UPDATE display_item SET order_index=0 WHERE order_index IS NULL"))
            conn.execute(
                text(
                    "UPDATE display_item SET transition='fade' "
                    "WHERE transition IS NULL OR transition NOT IN ('fade', 'slide', 'none')"
                )
            )
            conn.execute(
                text(
                    "UPDATE display_item SET duration_seconds=:fallback "
                    "WHERE duration_seconds IS NULL OR duration_seconds <= 0"
                ),
                {"fallback": DEFAULT_DURATION_SECONDS},
            )

        settings_cols = conn.execute(text("PRAGMA table_info(settings)")).fetchall()
        settings_col_names = {row[1] for row in settings_cols}
        if settings_cols:
            if "security_enabled" not in settings_col_names:
                conn.execute(text("ALTER TABLE settings ADD COLUMN security_enabled INTEGER DEFAULT 0"))
            if "admin_password" not in settings_col_names:
                conn.execute(text("ALTER TABLE settings ADD COLUMN admin_password VARCHAR"))
            conn.execute(text("UPDATE settings SET security_enabled=0 WHERE security_enabled IS NULL"))


def ensure_settings_row():
    """Create the singleton settings row once; later calls leave it untouched."""
    with engine.begin() as conn:
        existing = conn.execute(
            text("SELECT id FROM settings WHERE id=:id"), {"id": SETTINGS_ROW_ID}
        ).fetchone()
        if existing:
            return
        conn.execute(
            text(
                "INSERT INTO settings (id, refresh_interval_minutes, default_duration_seconds, security_enabled) "
                "VALUES (:id, :refresh, :duration, :security)"
            ),
            {
                "id": SETTINGS_ROW_ID,
                "refresh": DEFAULT_REFRESH_INTERVAL_MINUTES,
                "duration": DEFAULT_DURATION_SECONDS,
                "security": False,
            },
        )
