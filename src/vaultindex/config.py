"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from vaultindex.embedding.encoder import DEFAULT_MODEL

VAULT_ENV = "OBSIDIAN_VAULT_PATH"
API_KEY_ENV = "GEMINI_API_KEY"
INDEX_DB_NAME = Path(".obsidian") / "search.db"


def index_db_path(vault_path: Path) -> Path:
    """Location of the index database for a given vault."""
    return Path(vault_path) / INDEX_DB_NAME


@dataclass(slots=True)
class AppConfig:
    vault_path: Path | None = None
    db_path: Path | None = None
    api_key: str = ""
    model_name: str = DEFAULT_MODEL
    batch_size: int = 100
    body_budget: int = 8000
    search_limit: int = 20

    @classmethod
    def from_env(cls, **overrides: object) -> "AppConfig":
        """Build a config from environment variables, then apply explicit overrides.

        ``None`` overrides are ignored so CLI options that were not given
        leave the environment value in place.
        """
        vault = os.environ.get(VAULT_ENV, "")
        config = cls(
            vault_path=Path(vault).expanduser() if vault else None,
            api_key=os.environ.get(API_KEY_ENV, ""),
        )
        for key, value in overrides.items():
            if value is not None:
                setattr(config, key, value)
        return config

    def resolve_vault_path(self) -> Path:
        if self.vault_path is None:
            raise ValueError(
                f"No vault configured. Pass --vault or set {VAULT_ENV}."
            )
        return Path(self.vault_path).expanduser()

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            return index_db_path(self.resolve_vault_path())
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path
