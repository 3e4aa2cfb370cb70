from .settings import Settings, get_settings, get_version

__all__ = ["Settings", "get_settings", "get_version"]
