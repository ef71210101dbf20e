import asyncio
from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient

from vidhost.core.config import get_settings
from vidhost.core.db import Base, create_engine, create_schema
from vidhost.core.errors import ExternalToolFailure
from vidhost.main import create_app
from vidhost.media import StreamDimensions

JWT_SECRET = "test-secret"
JWT_ISSUER = "vidhost-test"
JWT_AUDIENCE = "vidhost"


class StubProber:
    """Stands in for ffprobe; records the paths it was asked to inspect."""

    def __init__(self, width: int = 1920, height: int = 1080, error: ExternalToolFailure | None = None):
        self.dimensions = StreamDimensions(width=width, height=height)
        self.error = error
        self.calls: list[Path] = []

    def probe(self, path: Path) -> StreamDimensions:
        assert path.exists(), "probe must run against the materialized file"
        self.calls.append(path)
        if self.error:
            raise self.error
        return self.dimensions


@pytest.fixture(autouse=True)
def configure_environment(monkeypatch, tmp_path):
    db_path = tmp_path / "vidhost_test.db"

    monkeypatch.setenv("VIDHOST_ENV", "test")
    monkeypatch.setenv("VIDHOST_LOG_LEVEL", "debug")
    monkeypatch.setenv("VIDHOST_DB_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("VIDHOST_ASSETS_ROOT", str(tmp_path / "assets"))
    monkeypatch.setenv("VIDHOST_SCRATCH_DIR", str(tmp_path / "scratch"))
    monkeypatch.setenv("VIDHOST_STORAGE_BACKEND", "local")
    monkeypatch.setenv("VIDHOST_JWT_SECRET", JWT_SECRET)
    monkeypatch.setenv("VIDHOST_JWT_ISSUER", JWT_ISSUER)
    monkeypatch.setenv("VIDHOST_JWT_AUDIENCE", JWT_AUDIENCE)
    monkeypatch.delenv("VIDHOST_MAX_THUMBNAIL_BYTES", raising=False)
    monkeypatch.delenv("VIDHOST_MAX_VIDEO_BYTES", raising=False)

    get_settings.cache_clear()
    settings = get_settings()
    engine = create_engine(settings)

    async def _setup() -> None:
        await create_schema(engine)
        await engine.dispose()

    asyncio.run(_setup())

    yield settings

    async def _teardown() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()

    asyncio.run(_teardown())
    get_settings.cache_clear()


@pytest.fixture()
def stub_prober() -> StubProber:
    return StubProber()


@pytest.fixture()
def client(configure_environment, stub_prober):
    app = create_app()
    with TestClient(app) as client:
        client.app.state.prober = stub_prober
        yield client


def build_token(user_id: str, *, scopes: list[str] | None = None) -> str:
    payload: dict[str, object] = {"sub": user_id, "iss": JWT_ISSUER, "aud": JWT_AUDIENCE}
    if scopes:
        payload["scopes"] = scopes
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


@pytest.fixture()
def owner_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-owner')}"}


@pytest.fixture()
def intruder_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-intruder')}"}


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-admin', scopes=['admin'])}"}


@pytest.fixture()
def video_id(client, owner_headers) -> str:
    resp = client.post("/v1/videos", json={"title": "Boat launch"}, headers=owner_headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]
