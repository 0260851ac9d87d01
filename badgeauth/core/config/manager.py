from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from badgeauth.core.config.io import ReadResult, atomic_write_json, quarantine_corrupt, read_json_file
from badgeauth.core.config.models import (
    AppConfig,
    AppFileConfig,
    AuthConfig,
    IdentityConfig,
    NotificationsConfig,
    WebConfig,
)
from badgeauth.core.config.paths import ConfigFsPaths
from badgeauth.core.errors import ConfigError


class SecretUnavailable(RuntimeError):
    pass


# Secrets are injected through the environment, never written to config/.
SECRET_ENV_VARS: Dict[str, str] = {
    "default_pin": "BADGEAUTH_DEFAULT_PIN",
    "idp_service_key": "BADGEAUTH_IDP_SERVICE_KEY",
    "mail_api_key": "BADGEAUTH_MAIL_API_KEY",
}

FILE_MODELS: Dict[str, type[BaseModel]] = {
    "app.json": AppFileConfig,
    "auth.json": AuthConfig,
    "identity.json": IdentityConfig,
    "notifications.json": NotificationsConfig,
    "web.json": WebConfig,
}


class ConfigManager:
    def __init__(
        self,
        *,
        fs: Optional[ConfigFsPaths] = None,
        logger=None,
        read_only: bool = False,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.fs = fs or ConfigFsPaths(".")
        self.logger = logger
        self.read_only = read_only
        self._environ = environ if environ is not None else os.environ
        self._cfg: Optional[AppConfig] = None

    # ---------- public API ----------
    def load_all(self) -> AppConfig:
        if not self.read_only:
            os.makedirs(self.fs.config_dir, exist_ok=True)
        files = self._load_raw_files()
        ensured = self._ensure_defaults(files)
        self._cfg = self._validate_all(ensured)
        return self._cfg

    def get(self) -> AppConfig:
        if self._cfg is None:
            raise ConfigError("Config not loaded.")
        return self._cfg

    def save_non_sensitive(self, filename: str, data: Dict[str, Any]) -> AppConfig:
        """
        Atomic write, then revalidate the whole set. An invalid file raises
        ConfigError and the previously loaded config stays in memory.
        """
        if self.read_only:
            raise ConfigError("Config manager is read-only.")
        if filename not in FILE_MODELS:
            raise ConfigError(f"Unknown config file: {filename}")
        if not isinstance(data, dict):
            raise ConfigError("Config data must be an object.")
        atomic_write_json(self.fs.file(filename), data)
        return self.load_all()

    def resolve_path(self, path: str) -> str:
        return self.fs.resolve(path)

    # Secrets
    def get_secret(self, name: str) -> str:
        env_name = SECRET_ENV_VARS.get(name)
        if env_name is None:
            raise SecretUnavailable(f"Unknown secret: {name}")
        value = str(self._environ.get(env_name, "") or "").strip()
        if not value:
            raise SecretUnavailable(f"{env_name} is not set.")
        return value

    def get_optional_secret(self, name: str) -> Optional[str]:
        try:
            return self.get_secret(name)
        except SecretUnavailable:
            return None

    # ---------- internals ----------
    def _load_raw_files(self) -> Dict[str, Dict[str, Any]]:
        out: Dict[str, Dict[str, Any]] = {}
        for name in FILE_MODELS:
            path = self.fs.file(name)
            rr: ReadResult = read_json_file(path)
            if rr.ok:
                out[name] = rr.data
                continue
            if rr.error and rr.error != "missing":
                moved = None if self.read_only else quarantine_corrupt(path, self.fs.backups_dir)
                if self.logger:
                    self.logger.warning(f"Unreadable config {name} ({rr.error}); using defaults. moved_to={moved}")
            out[name] = {}
        return out

    def _ensure_defaults(self, files: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        out = dict(files)
        for name, model in FILE_MODELS.items():
            if out.get(name):
                continue
            dflt = model().model_dump()
            out[name] = dflt
            if self.logger:
                self.logger.info(f"Missing config {name}; creating defaults.")
            if not self.read_only:
                atomic_write_json(self.fs.file(name), dflt)
        return out

    def _validate_all(self, files: Dict[str, Dict[str, Any]]) -> AppConfig:
        try:
            return AppConfig(
                app=AppFileConfig.model_validate(files.get("app.json") or {}),
                auth=AuthConfig.model_validate(files.get("auth.json") or {}),
                identity=IdentityConfig.model_validate(files.get("identity.json") or {}),
                notifications=NotificationsConfig.model_validate(files.get("notifications.json") or {}),
                web=WebConfig.model_validate(files.get("web.json") or {}),
            )
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

