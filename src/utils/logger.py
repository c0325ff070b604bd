"""
Loguru setup for the server and the CLI.

Three sinks: colored console, a rotating ai_mela.log and audit.log, which
only receives records bound with audit=True. Every Stonks balance change is
written there through audit_log().
"""
import sys
from pathlib import Path
from loguru import logger

CONSOLE_FORMAT = ("<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
                  "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>")
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
AUDIT_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {message}"


def _is_audit(record) -> bool:
    return bool(record["extra"].get("audit", False))


def setup_logger(
    log_dir: Path | None = None,
    level: str = "INFO",
    rotation: str = "10 MB",
    retention: str = "7 days",
    audit_retention: str = "30 days",
) -> Path:
    """
    Replace loguru's default handler with the arcade's sinks.

    Args:
        log_dir: Directory for log files (default: project_root/logs)
        level: Minimum level for console and ai_mela.log
        rotation: When to rotate log files
        retention: How long to keep ai_mela.log archives
        audit_retention: How long to keep audit.log archives

    Returns:
        The directory the log files are written to.
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    log_dir = Path(log_dir) if log_dir else Path(__file__).parent.parent.parent / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.add(
        log_dir / "ai_mela.log",
        level=level,
        format=FILE_FORMAT,
        rotation=rotation,
        retention=retention,
        compression="zip",
    )
    logger.add(
        log_dir / "audit.log",
        level="INFO",
        format=AUDIT_FORMAT,
        filter=_is_audit,
        rotation=rotation,
        retention=audit_retention,
    )
    return log_dir


def audit_log(message: str, **kwargs) -> None:
    """Write one ledger line: "STONKS | uid=P1 | change=-20 ..."."""
    context = " | ".join(f"{k}={v}" for k, v in kwargs.items())
    logger.bind(audit=True).info(f"{message} | {context}" if context else message)
