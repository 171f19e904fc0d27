"""Settings package for Folio.

- _paths.py: Path constants for the settings file and output directories
- _backup.py: settings.json.bak handling and change logging
- _validation.py: Settings validation functions
- _settings.py: Main Settings dataclass
"""

from src.settings._paths import (
    LOGS_DIR,
    OUTPUT_DIR,
    SETTINGS_FILE,
)
from src.settings._settings import Settings

__all__ = [
    "LOGS_DIR",
    "OUTPUT_DIR",
    "SETTINGS_FILE",
    "Settings",
]
