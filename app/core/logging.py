# ============================================================================
# FILE: app/core/logging.py
# ============================================================================
import logging
import sys
from app.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False

def setup_logging(level: str = None) -> None:
    """Configure root logging once for the whole app"""
    global _configured
    if _configured:
        return
    
    level_name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stdout,
    )
    # urllib3 is chatty at INFO
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    _configured = True
