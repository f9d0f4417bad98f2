"""
logging_config.py
Root logger setup. Level comes from LOG_LEVEL (default INFO).
"""

from __future__ import annotations

import logging
import os


def configure_logging() -> None:
    log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="[%(asctime)s] %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Streamlit's own loggers are noisy at INFO
    logging.getLogger("streamlit").setLevel(logging.WARNING)
