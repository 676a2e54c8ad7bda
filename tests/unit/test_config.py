"""
Unit tests for client configuration and credential providers.

Tests cover:
- Loading from environment variables
- Validation errors
- Secrets kept out of reprs
"""

import pytest

from dbsync.chaindb.config import (
    ClientConfig,
    OrderingBackend,
    RegistryBackend,
    SnapshotBackend,
)
from dbsync.chaindb.credentials import EnvCredentialProvider, StaticCredentialProvider
from dbsync.chaindb.registry import (
    HttpPointerRegistry,
    InMemoryPointerRegistry,
    SqlitePointerRegistry,
    create_pointer_registry,
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in (
        "SNAPSHOT_STORE",
        "POINTER_REGISTRY",
        "ORDERING_SOURCE",
        "CHAINDB_DB_NAME",
        "CHAIN_MAX_DEPTH",
        "REGISTRY_OWNER_KEY",
        "S3_BUCKET",
        "REGISTRY_NAME",
        "IPFS_API_URL",
        "IPFS_GATEWAY_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CHAINDB_DATA_DIR", str(tmp_path))
    return monkeypatch


class TestClientConfig:
    """Tests for ClientConfig.from_env."""

    def test_defaults(self, clean_env, tmp_path):
        config = ClientConfig.from_env()

        assert config.storage.data_dir == str(tmp_path)
        assert config.storage.db_name == "todo-db"
        assert config.snapshot_store.backend == SnapshotBackend.IPFS
        assert config.registry.backend == RegistryBackend.HTTP
        assert config.ordering.backend == OrderingBackend.LOCAL
        assert config.chain.max_depth == 1000

    def test_backends_from_env(self, clean_env):
        clean_env.setenv("SNAPSHOT_STORE", "S3")
        clean_env.setenv("POINTER_REGISTRY", "sqlite")
        clean_env.setenv("ORDERING_SOURCE", "jsonrpc")
        clean_env.setenv("REGISTRY_OWNER_KEY", "k")

        config = ClientConfig.from_env()

        assert config.snapshot_store.backend == SnapshotBackend.S3
        assert config.registry.backend == RegistryBackend.SQLITE
        assert config.registry.owner_key == "k"
        assert config.ordering.backend == OrderingBackend.JSONRPC

    def test_unknown_backend(self, clean_env):
        clean_env.setenv("SNAPSHOT_STORE", "floppy")

        with pytest.raises(ValueError, match="SNAPSHOT_STORE"):
            ClientConfig.from_env()

    def test_empty_db_name(self, clean_env):
        clean_env.setenv("CHAINDB_DB_NAME", "")

        with pytest.raises(ValueError, match="CHAINDB_DB_NAME"):
            ClientConfig.from_env()

    def test_max_depth_must_be_positive(self, clean_env):
        clean_env.setenv("CHAIN_MAX_DEPTH", "0")

        with pytest.raises(ValueError, match="CHAIN_MAX_DEPTH"):
            ClientConfig.from_env()

    def test_s3_requires_bucket(self, clean_env):
        clean_env.setenv("SNAPSHOT_STORE", "s3")
        clean_env.setenv("S3_BUCKET", "")

        with pytest.raises(ValueError, match="S3_BUCKET"):
            ClientConfig.from_env()


class TestCreatePointerRegistry:
    """Tests for registry backend selection."""

    def test_memory(self, clean_env):
        clean_env.setenv("POINTER_REGISTRY", "memory")
        assert isinstance(create_pointer_registry(ClientConfig.from_env()), InMemoryPointerRegistry)

    def test_sqlite(self, clean_env):
        clean_env.setenv("POINTER_REGISTRY", "sqlite")
        registry = create_pointer_registry(ClientConfig.from_env())

        assert isinstance(registry, SqlitePointerRegistry)
        assert registry.name == "todo-db"

    @pytest.mark.asyncio
    async def test_http(self, clean_env):
        registry = create_pointer_registry(ClientConfig.from_env())

        assert isinstance(registry, HttpPointerRegistry)
        await registry.close()


class TestCredentialProviders:
    """Tests for credential providers."""

    def test_env_provider_reads_each_time(self, monkeypatch):
        provider = EnvCredentialProvider("TEST_CHAINDB_KEY")
        monkeypatch.delenv("TEST_CHAINDB_KEY", raising=False)
        assert provider.get() is None

        monkeypatch.setenv("TEST_CHAINDB_KEY", "secret-value")
        assert provider.get() == "secret-value"

    def test_empty_env_value_is_no_credential(self, monkeypatch):
        monkeypatch.setenv("TEST_CHAINDB_KEY", "")
        assert EnvCredentialProvider("TEST_CHAINDB_KEY").get() is None

    def test_reprs_hide_the_key(self, monkeypatch):
        monkeypatch.setenv("TEST_CHAINDB_KEY", "secret-value")

        assert "secret-value" not in repr(EnvCredentialProvider("TEST_CHAINDB_KEY"))
        assert "secret-value" not in repr(StaticCredentialProvider("secret-value"))
        assert StaticCredentialProvider(None).get() is None
