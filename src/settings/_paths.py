"""Path constants for Folio settings and output files."""

import logging
from pathlib import Path

# Configure module logger
logger = logging.getLogger(__name__)

SETTINGS_FILE = Path(__file__).parent.parent / "settings.json"

# Go up from src/settings to src/, then up to project root
PROJECT_ROOT = Path(__file__).parent.parent.parent
OUTPUT_DIR = PROJECT_ROOT / "output"
LOGS_DIR = OUTPUT_DIR / "logs"

__all__ = [
    "LOGS_DIR",
    "OUTPUT_DIR",
    "PROJECT_ROOT",
    "SETTINGS_FILE",
]
