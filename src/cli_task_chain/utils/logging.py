"""Logging configuration for the tchain CLI."""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from cli_task_chain.constants import LOG_DIR


def setup_logging(level: Optional[str] = None) -> Path:
    """Send log records to a timestamped file under LOG_DIR and return its path.

    The level comes from ``level`` or the TCHAIN_LOG_LEVEL env var (default INFO).
    """
    log_level = (level or os.getenv("TCHAIN_LOG_LEVEL", "INFO")).upper()
    LOG_DIR.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = LOG_DIR / f"tchain_{timestamp}.log"

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler(log_file)],
        force=True,
    )
    return log_file
