"""
Logging setup
"""
import logging
import sys
from typing import Optional

DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Initialise stdlib logging for command line use."""
    logging.basicConfig(
        format=LOG_FORMAT,
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )


def mask_token(token: Optional[str], visible: int = 10) -> str:
    """Shorten a credential for log output."""
    if not token:
        return "<none>"
    return token[:visible] + "..."
