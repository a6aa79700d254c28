import logging
import sys
from typing import Optional

from apptracker.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the API process or the scheduler CLI."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def mask_email(address: Optional[str]) -> str:
    """Mask the local part of an address for log output: jane.doe@x.com -> j***@x.com"""
    if not address:
        return "<none>"
    local, sep, domain = address.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"
