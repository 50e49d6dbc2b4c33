from config.settings import Settings, get_settings, reset_settings
from config.log_setup import setup_logging

__all__ = ["Settings", "get_settings", "reset_settings", "setup_logging"]
