import sys

from loguru import logger

from app.core.config import settings

_LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str | None = None) -> None:
    """Replace loguru's default handler with one stderr sink.

    enqueue=True funnels every record through a single writer, so records
    emitted from concurrent requests never interleave.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.LOG_LEVEL).upper(),
        format=_LOG_FORMAT,
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )
