"""Tests for application configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from vaultindex.config import API_KEY_ENV, VAULT_ENV, AppConfig, index_db_path


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    monkeypatch.delenv(VAULT_ENV, raising=False)
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    return monkeypatch


class TestAppConfig:
    """Test AppConfig dataclass."""

    def test_default_config(self) -> None:
        config = AppConfig()

        assert config.vault_path is None
        assert config.db_path is None
        assert config.api_key == ""
        assert config.model_name == "gemini-embedding-001"
        assert config.batch_size == 100
        assert config.body_budget == 8000

    def test_from_env(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        clean_env.setenv(VAULT_ENV, str(tmp_path))
        clean_env.setenv(API_KEY_ENV, "secret")

        config = AppConfig.from_env()

        assert config.vault_path == tmp_path
        assert config.api_key == "secret"

    def test_from_env_overrides(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        clean_env.setenv(VAULT_ENV, "/from/env")

        config = AppConfig.from_env(vault_path=tmp_path, db_path=None)

        assert config.vault_path == tmp_path
        assert config.db_path is None

    def test_from_env_empty(self, clean_env: pytest.MonkeyPatch) -> None:
        config = AppConfig.from_env()

        assert config.vault_path is None
        assert config.api_key == ""

    def test_resolve_vault_path_missing(self) -> None:
        with pytest.raises(ValueError, match="No vault configured"):
            AppConfig().resolve_vault_path()

    def test_resolve_db_path_default(self, tmp_path: Path) -> None:
        config = AppConfig(vault_path=tmp_path)

        assert config.resolve_db_path() == tmp_path / ".obsidian" / "search.db"
        assert index_db_path(tmp_path) == config.resolve_db_path()

    def test_resolve_db_path_absolute(self, tmp_path: Path) -> None:
        db = tmp_path / "custom.db"
        config = AppConfig(db_path=db)

        assert config.resolve_db_path(Path("/elsewhere")) == db

    def test_resolve_db_path_relative(self) -> None:
        config = AppConfig(db_path=Path("data/search.db"))

        assert config.resolve_db_path(Path("/base")) == Path("/base/data/search.db")
        assert config.resolve_db_path() == Path("data/search.db")
