from plantops.config.settings import MEDIA_TYPES, Settings, load_settings

__all__ = ["MEDIA_TYPES", "Settings", "load_settings"]
