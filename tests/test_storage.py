"""Tests for token storage backends."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from fortnox_mcp.auth.storage import file as file_storage
from fortnox_mcp.auth.storage import (
    FileTokenStorage,
    MemoryTokenStorage,
    RedisTokenStorage,
    TokenStorage,
    create_token_storage,
    get_storage_from_env,
)
from fortnox_mcp.config import Settings
from fortnox_mcp.core.constants import REDIS_KEY_PREFIX, STORAGE_TTL_SECONDS
from fortnox_mcp.core.exceptions import ConfigurationError, MissingConfigurationError


class TestMemoryTokenStorage:
    """In-memory backend."""

    @pytest.mark.asyncio
    async def test_round_trip(self, make_credentials):
        storage = MemoryTokenStorage()
        creds = make_credentials("s1")

        await storage.put("s1", creds)

        assert await storage.get("s1") == creds
        assert await storage.exists("s1")
        assert len(storage) == 1

    @pytest.mark.asyncio
    async def test_absent_subject(self):
        storage = MemoryTokenStorage()
        assert await storage.get("nobody") is None
        assert not await storage.exists("nobody")

    @pytest.mark.asyncio
    async def test_put_replaces(self, make_credentials):
        storage = MemoryTokenStorage()
        await storage.put("s1", make_credentials("s1", access_token="old"))
        await storage.put("s1", make_credentials("s1", access_token="new"))

        assert (await storage.get("s1")).access_token == "new"

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, make_credentials):
        storage = MemoryTokenStorage()
        await storage.put("s1", make_credentials("s1"))

        await storage.delete("s1")
        await storage.delete("s1")

        assert await storage.get("s1") is None

    def test_satisfies_protocol(self):
        assert isinstance(MemoryTokenStorage(), TokenStorage)


class TestFileTokenStorage:
    """File backend."""

    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path, make_credentials):
        storage = FileTokenStorage(tmp_path / "tokens")
        creds = make_credentials("client:abc")

        await storage.put("client:abc", creds)

        assert await storage.get("client:abc") == creds
        assert await storage.exists("client:abc")

    @pytest.mark.asyncio
    async def test_survives_new_instance(self, tmp_path, make_credentials):
        creds = make_credentials("s1")
        await FileTokenStorage(tmp_path).put("s1", creds)

        assert await FileTokenStorage(tmp_path).get("s1") == creds

    @pytest.mark.asyncio
    async def test_subject_cannot_escape_directory(self, tmp_path, make_credentials):
        root = tmp_path / "tokens"
        storage = FileTokenStorage(root)

        await storage.put("../../evil", make_credentials("../../evil"))

        files = list(root.iterdir())
        assert len(files) == 1
        assert files[0].parent == root
        assert not (tmp_path / "evil.json").exists()

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_as_absent(self, tmp_path):
        storage = FileTokenStorage(tmp_path)
        (tmp_path / "s1.json").write_text("{not json")

        assert await storage.get("s1") is None

    @pytest.mark.asyncio
    async def test_delete(self, tmp_path, make_credentials):
        storage = FileTokenStorage(tmp_path)
        await storage.put("s1", make_credentials("s1"))

        await storage.delete("s1")
        await storage.delete("s1")

        assert not await storage.exists("s1")

    @pytest.mark.asyncio
    async def test_no_temp_files_left_behind(self, tmp_path, make_credentials):
        storage = FileTokenStorage(tmp_path)
        await storage.put("s1", make_credentials("s1"))
        await storage.put("s1", make_credentials("s1", access_token="again"))

        assert [p.name for p in tmp_path.iterdir()] == ["s1.json"]

    @pytest.mark.asyncio
    async def test_disk_access_runs_in_worker_threads(
        self, tmp_path, make_credentials, monkeypatch
    ):
        storage = FileTokenStorage(tmp_path)
        offloaded = []
        real_to_thread = asyncio.to_thread

        async def recording_to_thread(func, *args, **kwargs):
            offloaded.append(func)
            return await real_to_thread(func, *args, **kwargs)

        monkeypatch.setattr(file_storage.asyncio, "to_thread", recording_to_thread)

        await storage.put("s1", make_credentials("s1"))
        await storage.get("s1")
        await storage.exists("s1")
        await storage.delete("s1")

        assert len(offloaded) == 4


class TestRedisTokenStorage:
    """Redis backend against a mocked client."""

    @pytest.fixture
    def redis_client(self):
        client = AsyncMock()
        client.get.return_value = None
        client.exists.return_value = 0
        return client

    @pytest.mark.asyncio
    async def test_put_uses_prefix_and_ttl(self, redis_client, make_credentials):
        storage = RedisTokenStorage(client=redis_client)
        creds = make_credentials("s1")

        await storage.put("s1", creds)

        redis_client.set.assert_awaited_once()
        args, kwargs = redis_client.set.call_args
        assert args[0] == f"{REDIS_KEY_PREFIX}s1"
        assert json.loads(args[1])["access_token"] == creds.access_token
        assert kwargs["ex"] == STORAGE_TTL_SECONDS

    @pytest.mark.asyncio
    async def test_get_round_trip(self, redis_client, make_credentials):
        storage = RedisTokenStorage(client=redis_client)
        creds = make_credentials("s1")
        redis_client.get.return_value = creds.model_dump_json()

        assert await storage.get("s1") == creds
        redis_client.get.assert_awaited_once_with(f"{REDIS_KEY_PREFIX}s1")

    @pytest.mark.asyncio
    async def test_get_absent(self, redis_client):
        storage = RedisTokenStorage(client=redis_client)
        assert await storage.get("s1") is None

    @pytest.mark.asyncio
    async def test_get_malformed_reads_as_absent(self, redis_client):
        storage = RedisTokenStorage(client=redis_client)
        redis_client.get.return_value = '{"subject_id": "s1"}'

        assert await storage.get("s1") is None

    @pytest.mark.asyncio
    async def test_delete_and_exists(self, redis_client):
        storage = RedisTokenStorage(client=redis_client)
        redis_client.exists.return_value = 1

        assert await storage.exists("s1")
        await storage.delete("s1")

        redis_client.delete.assert_awaited_once_with(f"{REDIS_KEY_PREFIX}s1")

    def test_requires_url_or_client(self):
        with pytest.raises(MissingConfigurationError):
            RedisTokenStorage()


class TestStorageFactory:
    """Backend selection."""

    def test_create_known_types(self, tmp_path):
        assert isinstance(create_token_storage("memory"), MemoryTokenStorage)
        assert isinstance(
            create_token_storage("file", storage_dir=str(tmp_path)), FileTokenStorage
        )
        assert isinstance(
            create_token_storage("redis", redis_url="redis://localhost:6379/0"),
            RedisTokenStorage,
        )

    def test_unknown_type(self):
        with pytest.raises(ConfigurationError, match="Unknown token storage type"):
            create_token_storage("sqlite")

    def test_explicit_setting_wins(self, tmp_path):
        settings = Settings(
            token_storage="file",
            token_storage_dir=str(tmp_path),
            redis_url="redis://localhost:6379/0",
        )
        assert isinstance(get_storage_from_env(settings), FileTokenStorage)

    def test_redis_auto_detected(self):
        settings = Settings(redis_url="redis://localhost:6379/0")
        assert isinstance(get_storage_from_env(settings), RedisTokenStorage)

    def test_memory_fallback(self):
        assert isinstance(get_storage_from_env(Settings()), MemoryTokenStorage)

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("TOKEN_STORAGE", "memory")
        assert isinstance(get_storage_from_env(), MemoryTokenStorage)
