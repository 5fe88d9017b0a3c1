"""
Logging configuration

Console and daily application logs, plus a ledger audit file that only
receives records bound with ``audit=True``: one line per committed write.
"""
from loguru import logger
import sys
from shipledger.config import get_settings

settings = get_settings()

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
AUDIT_FORMAT = "{time:YYYY-MM-DDTHH:mm:ss.SSSZZ} | {extra[entity]: <18} | {extra[action]: <8} | {message}"


def _is_audit(record) -> bool:
    return record["extra"].get("audit", False)


def setup_logger():
    """Configure console, application file, audit file and error file sinks"""
    logger.remove()  # Remove default handler
    logger.configure(extra={"entity": "-", "action": "-"})

    logger.add(
        sys.stdout,
        colorize=True,
        format=CONSOLE_FORMAT,
        level=settings.log_level
    )

    # Empty log_dir keeps everything on the console (used by the test suite)
    if not settings.log_dir:
        return logger

    logger.add(
        f"{settings.log_dir}/shipledger_{{time:YYYY-MM-DD}}.log",
        rotation="00:00",
        retention="30 days",
        compression="zip",
        level="INFO",
        filter=lambda record: not _is_audit(record)
    )

    logger.add(
        f"{settings.log_dir}/ledger_audit_{{time:YYYY-MM-DD}}.log",
        rotation="00:00",
        retention="400 days",
        format=AUDIT_FORMAT,
        level="INFO",
        filter=_is_audit
    )

    logger.add(
        f"{settings.log_dir}/errors_{{time:YYYY-MM-DD}}.log",
        rotation="00:00",
        retention="90 days",
        level="ERROR"
    )

    return logger


# Initialize logger
log = setup_logger()


def audit(entity: str, action: str, message: str) -> None:
    """Record a committed ledger change in the audit trail."""
    log.bind(audit=True, entity=entity, action=action).info(message)
