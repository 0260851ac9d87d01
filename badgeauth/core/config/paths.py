from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ConfigFsPaths:
    """Filesystem layout under one service root: config/, config/backups/, and relative data/log paths."""

    root: str = "."

    @property
    def config_dir(self) -> str:
        return os.path.join(self.root, "config")

    @property
    def backups_dir(self) -> str:
        return os.path.join(self.config_dir, "backups")

    def file(self, name: str) -> str:
        return os.path.join(self.config_dir, name)

    def resolve(self, path: str) -> str:
        """Relative paths in config files are relative to the root."""
        if os.path.isabs(path):
            return path
        return os.path.join(self.root, path)
