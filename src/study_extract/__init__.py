"""Study extraction package."""

from .config import Settings, load_settings
from .orchestrator import ExtractionOrchestrator

__all__ = ["ExtractionOrchestrator", "Settings", "load_settings"]
