from __future__ import annotations

from pathlib import Path

import pytest

from vidhost.core.config import get_settings


def test_env_aliases_and_defaults(configure_environment, tmp_path: Path):
    settings = configure_environment
    assert settings.environment == "test"
    assert settings.database_url.endswith("vidhost_test.db")
    assert settings.secrets.jwt_secret == "test-secret"
    assert settings.max_thumbnail_bytes == 10 * 1024 * 1024
    assert settings.max_video_bytes == 1024 * 1024 * 1024
    assert settings.resolved_scratch_dir == tmp_path / "scratch"
    assert settings.resolved_scratch_dir.is_dir()


def test_production_requires_real_secret(monkeypatch):
    monkeypatch.setenv("VIDHOST_ENV", "production")
    monkeypatch.setenv("VIDHOST_JWT_SECRET", "change-me")
    get_settings.cache_clear()
    with pytest.raises(ValueError):
        get_settings()


def test_s3_backend_requires_bucket(monkeypatch):
    monkeypatch.setenv("VIDHOST_STORAGE_BACKEND", "s3")
    monkeypatch.delenv("VIDHOST_S3_BUCKET", raising=False)
    get_settings.cache_clear()
    with pytest.raises(ValueError):
        get_settings()


def test_assets_dir_alias(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("VIDHOST_ASSETS_DIR", str(tmp_path / "elsewhere"))
    get_settings.cache_clear()
    assert get_settings().assets_root == tmp_path / "elsewhere"
