# app/core/session_utils.py
import logging
from contextlib import contextmanager

from sqlmodel import Session

logger = logging.getLogger(__name__)


@contextmanager
def non_fatal(session: Session, action: str, *args):
    """
    Run a side step that may fail without failing the request.

    On success the step is committed. On any error the session is rolled
    back to the last commit and the failure is logged, then execution
    continues after the `with` block.

        with non_fatal(session, "mark table %s occupied", table_id):
            ...
    """
    try:
        yield
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Non-fatal step failed: " + action, *args)
