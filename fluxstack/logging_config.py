"""Logging configuration for the Fluxstack catalog."""

import logging
import sys
from pathlib import Path
from typing import Optional

_configured = False


def setup_logging(log_level: str = "INFO", log_dir: Optional[Path] = None) -> None:
    """Set up logging configuration."""
    global _configured
    if _configured:
        return

    # Create logs directory if it doesn't exist
    log_dir = Path(log_dir or "logs")
    log_dir.mkdir(parents=True, exist_ok=True)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # File handler for all logs
    file_handler = logging.FileHandler(log_dir / "fluxstack.log")
    file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root_logger.addHandler(file_handler)

    # Stream handler for INFO and above
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter("%(name)s - %(levelname)s - %(message)s"))
    stream_handler.setLevel(logging.INFO)
    root_logger.addHandler(stream_handler)

    # Silence httpx logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    _configured = True
