"""
Transaction helper shared by the ledger services.

Every public service operation runs inside ``atomic(db)``: the session is
committed once at the end, or rolled back on any error so that no partial
write is ever visible. Store-level IntegrityErrors are translated into
ForeignKeyViolation or ConstraintViolation.
"""
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shipledger.exceptions import ConstraintViolation, ForeignKeyViolation
from shipledger.utils.logger import log

# SQLSTATE for foreign_key_violation (PostgreSQL and other DB-API drivers)
FOREIGN_KEY_SQLSTATE = "23503"


def is_foreign_key_failure(error: IntegrityError) -> bool:
    """True when the store rejected a write for a dangling foreign key."""
    orig = error.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate == FOREIGN_KEY_SQLSTATE:
        return True
    return "FOREIGN KEY" in str(orig).upper()


@contextmanager
def atomic(db: Session):
    """Commit the work done inside the block, or roll all of it back."""
    try:
        yield db
        db.commit()
    except IntegrityError as e:
        db.rollback()
        log.warning(f"Store rejected write: {e.orig}")
        if is_foreign_key_failure(e):
            raise ForeignKeyViolation("row", None, "referenced row", message=f"rejected by database: {e.orig}") from e
        raise ConstraintViolation("row", None, f"rejected by database: {e.orig}") from e
    except Exception:
        db.rollback()
        raise
