"""Shared fixtures. Environment is pinned before any application module is imported."""

import asyncio
import io
import os
import tempfile
from pathlib import Path
from types import SimpleNamespace

_TMP = Path(tempfile.mkdtemp(prefix="resume-builder-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP / 'app.sqlite'}"
os.environ["BLOB_DIR"] = str(_TMP / "blobs")
os.environ["BLOB_BASE_URL"] = "/media/resume_photos"
os.environ["AUTOSAVE_DEBOUNCE_SECONDS"] = "0.05"
os.environ["REDIS_URL"] = "redis://127.0.0.1:6399/0"
os.environ["OPENAI_API_KEY"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402
from PIL import Image  # noqa: E402
from redis.exceptions import ConnectionError as RedisConnectionError  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from resume_builder.core.blob import LocalBlobStore  # noqa: E402
from resume_builder.core.db import Base, make_engine  # noqa: E402
from resume_builder.editor.models import SavedResume  # noqa: E402
import resume_builder.core.models.user  # noqa: E402,F401
import resume_builder.core.models.resume  # noqa: E402,F401


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the rate limiter."""

    def __init__(self, broken: bool = False):
        self.broken = broken
        self.counts = {}
        self.expiries = {}

    async def ping(self):
        if self.broken:
            raise RedisConnectionError("redis is down")
        return True

    async def incr(self, key):
        if self.broken:
            raise RedisConnectionError("redis is down")
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key, seconds):
        self.expiries[key] = seconds
        return True

    async def ttl(self, key):
        return self.expiries.get(key, -1)


class FakeOpenAI:
    """Stands in for AsyncOpenAI; answers every completion with ``content``."""

    def __init__(self, content):
        self.content = content
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class RecordingSaver:
    """Persistence stand-in for the autosave controller."""

    def __init__(self, fail: bool = False, gate: asyncio.Event = None):
        self.fail = fail
        self.gate = gate
        self.payloads = []

    async def __call__(self, payload: dict) -> SavedResume:
        self.payloads.append(dict(payload))
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        if self.fail:
            raise RuntimeError("store is down")
        return SavedResume(id=payload.get("id") or "resume-1", user_id=1)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"), "/media/test")


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.sqlite'}")

    async def create_all():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_all())
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    asyncio.run(engine.dispose())


def make_png(size=(64, 48), color=(200, 30, 30)) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", size, color).save(out, format="PNG")
    return out.getvalue()


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def make_saver():
    return RecordingSaver


@pytest.fixture
def fake_openai():
    return FakeOpenAI
