import logging

from authgate.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )

def short(value: str | None) -> str:
    """Log-safe prefix of an opaque or signed token."""
    if not value:
        return "<empty>"
    return f"{value[:8]}..."
