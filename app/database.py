# app/database.py
from sqlmodel import SQLModel, create_engine, Session

from app.core.config import get_settings

settings = get_settings()


def _engine_options(url: str) -> tuple[str, dict]:
    """
    URL and engine kwargs for the configured database.

    Postgres (Supabase pooler, session mode):
      - sslmode=require is appended when the URL does not set it
      - one pooled connection and no overflow; the pooler caps clients
        ("MaxClientsInSessionMode: max clients reached")

    Anything else (SQLite for local runs and tests):
      - connections are shared with FastAPI's worker threads
    """
    options: dict = {"echo": False, "pool_pre_ping": True}

    if not url.startswith("postgres"):
        options["connect_args"] = {"check_same_thread": False}
        return url, options

    if "sslmode=" not in url:
        url += ("&" if "?" in url else "?") + "sslmode=require"
    options.update(pool_size=1, max_overflow=0)
    return url, options


_url, _options = _engine_options(settings.DATABASE_URL)
engine = create_engine(_url, **_options)


def create_db_and_tables() -> None:
    """
    Create missing tables for every imported table model (run at startup).
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    Request-scoped SQLModel session.

    Order creation spans several commits (order, stock deduction, side
    steps); all of them go through this one session.
    """
    with Session(engine) as session:
        yield session
