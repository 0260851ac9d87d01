from badgeauth.core.config.manager import ConfigManager, SecretUnavailable
from badgeauth.core.config.models import AppConfig
from badgeauth.core.config.paths import ConfigFsPaths

__all__ = ["AppConfig", "ConfigFsPaths", "ConfigManager", "SecretUnavailable"]
