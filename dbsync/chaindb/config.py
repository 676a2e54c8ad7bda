"""
Configuration management for the ChainDB client.

All configuration is done via environment variables.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Secrets (private key, AWS keys) are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class SnapshotBackend(Enum):
    """Supported snapshot store backends."""

    MEMORY = "memory"
    IPFS = "ipfs"
    S3 = "s3"


class RegistryBackend(Enum):
    """Supported pointer registry backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"
    HTTP = "http"


class OrderingBackend(Enum):
    """Supported sources of chain_seq / chain_time."""

    LOCAL = "local"
    JSONRPC = "jsonrpc"


def _parse_enum(enum_cls: type, env_name: str, default: str) -> Enum:
    raw = os.getenv(env_name, default).lower()
    try:
        return enum_cls(raw)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Invalid {env_name} '{raw}'. Must be one of: {choices}")


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory holding the local database and version cache
        db_name: Fixed logical database name; keys both files
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    data_dir: str = "./chaindb-data"
    db_name: str = "todo-db"
    busy_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("CHAINDB_DATA_DIR", "./chaindb-data"),
            db_name=os.getenv("CHAINDB_DB_NAME", "todo-db"),
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class SnapshotStoreConfig:
    """Snapshot store configuration.

    Attributes:
        backend: Which blob backend to use
        ipfs_api_url: IPFS HTTP RPC endpoint (add/cat)
        ipfs_gateway_url: Optional public gateway for reads
        ipfs_timeout_seconds: Per-request timeout for IPFS calls
        s3_bucket: S3 bucket name
        s3_region: AWS region
        s3_endpoint_url: Custom endpoint URL (for MinIO)
        s3_blob_prefix: Key prefix for content-addressed blobs
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
    """

    backend: SnapshotBackend = SnapshotBackend.IPFS
    ipfs_api_url: str = "http://localhost:5001/api/v0"
    ipfs_gateway_url: str | None = None
    ipfs_timeout_seconds: float = 30.0
    s3_bucket: str = "chaindb-blobs"
    s3_region: str = "us-east-1"
    s3_endpoint_url: str | None = None
    s3_blob_prefix: str = "blobs"
    access_key_id: str | None = None
    secret_access_key: str | None = None

    @classmethod
    def from_env(cls) -> SnapshotStoreConfig:
        """Load configuration from environment variables."""
        return cls(
            backend=_parse_enum(SnapshotBackend, "SNAPSHOT_STORE", "ipfs"),
            ipfs_api_url=os.getenv("IPFS_API_URL", "http://localhost:5001/api/v0"),
            ipfs_gateway_url=os.getenv("IPFS_GATEWAY_URL"),
            ipfs_timeout_seconds=float(os.getenv("IPFS_TIMEOUT_SECONDS", "30")),
            s3_bucket=os.getenv("S3_BUCKET", "chaindb-blobs"),
            s3_region=os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1")),
            s3_endpoint_url=os.getenv("S3_ENDPOINT"),
            s3_blob_prefix=os.getenv("S3_BLOB_PREFIX", "blobs"),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )


@dataclass(frozen=True)
class RegistryConfig:
    """Pointer registry configuration.

    Attributes:
        backend: Which registry backend to use
        url: Base URL of the registry service (http backend)
        name: Pointer slot name
        sqlite_path: Database path (sqlite backend)
        owner_key: Key the local registry accepts (memory/sqlite backends)
        timeout_seconds: Per-request timeout (http backend)
    """

    backend: RegistryBackend = RegistryBackend.HTTP
    url: str = "http://localhost:8090"
    name: str = "todo-db"
    sqlite_path: str = "./chaindb-data/registry.db"
    owner_key: str | None = None
    timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> RegistryConfig:
        """Load configuration from environment variables."""
        return cls(
            backend=_parse_enum(RegistryBackend, "POINTER_REGISTRY", "http"),
            url=os.getenv("REGISTRY_URL", "http://localhost:8090"),
            name=os.getenv("REGISTRY_NAME", "todo-db"),
            sqlite_path=os.getenv("REGISTRY_SQLITE_PATH", "./chaindb-data/registry.db"),
            owner_key=os.getenv("REGISTRY_OWNER_KEY"),
            timeout_seconds=float(os.getenv("REGISTRY_TIMEOUT_SECONDS", "10")),
        )


@dataclass(frozen=True)
class OrderingConfig:
    """Configuration for the chain_seq / chain_time source.

    Attributes:
        backend: local counter or a JSON-RPC chain node
        rpc_url: JSON-RPC endpoint of the chain node
        timeout_seconds: Per-request timeout
    """

    backend: OrderingBackend = OrderingBackend.LOCAL
    rpc_url: str = "https://sepolia.base.org"
    timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> OrderingConfig:
        """Load configuration from environment variables."""
        return cls(
            backend=_parse_enum(OrderingBackend, "ORDERING_SOURCE", "local"),
            rpc_url=os.getenv("CHAIN_RPC_URL", "https://sepolia.base.org"),
            timeout_seconds=float(os.getenv("CHAIN_RPC_TIMEOUT_SECONDS", "10")),
        )


@dataclass(frozen=True)
class ChainConfig:
    """Version chain limits.

    Attributes:
        max_depth: Maximum prev links followed by any lineage walk
    """

    max_depth: int = 1000

    @classmethod
    def from_env(cls) -> ChainConfig:
        """Load configuration from environment variables."""
        return cls(max_depth=int(os.getenv("CHAIN_MAX_DEPTH", "1000")))


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class ClientConfig:
    """Complete client configuration.

    Attributes:
        storage: Local storage configuration
        snapshot_store: Snapshot store configuration
        registry: Pointer registry configuration
        ordering: Ordering source configuration
        chain: Version chain limits
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    snapshot_store: SnapshotStoreConfig = field(default_factory=SnapshotStoreConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    ordering: OrderingConfig = field(default_factory=OrderingConfig)
    chain: ChainConfig = field(default_factory=ChainConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ClientConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            snapshot_store=SnapshotStoreConfig.from_env(),
            registry=RegistryConfig.from_env(),
            ordering=OrderingConfig.from_env(),
            chain=ChainConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.storage.db_name:
            raise ValueError("CHAINDB_DB_NAME must not be empty")

        if self.snapshot_store.backend == SnapshotBackend.S3 and not self.snapshot_store.s3_bucket:
            raise ValueError("S3_BUCKET is required when SNAPSHOT_STORE=s3")
        if self.snapshot_store.backend == SnapshotBackend.IPFS and not (
            self.snapshot_store.ipfs_api_url or self.snapshot_store.ipfs_gateway_url
        ):
            raise ValueError("IPFS_API_URL or IPFS_GATEWAY_URL is required when SNAPSHOT_STORE=ipfs")

        if self.registry.backend == RegistryBackend.HTTP and not self.registry.url:
            raise ValueError("REGISTRY_URL is required when POINTER_REGISTRY=http")
        if not self.registry.name:
            raise ValueError("REGISTRY_NAME must not be empty")

        if self.ordering.backend == OrderingBackend.JSONRPC and not self.ordering.rpc_url:
            raise ValueError("CHAIN_RPC_URL is required when ORDERING_SOURCE=jsonrpc")

        if self.chain.max_depth < 1:
            raise ValueError("CHAIN_MAX_DEPTH must be at least 1")

        if not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on first write."
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Client configuration loaded",
            extra={
                "data_dir": self.storage.data_dir,
                "db_name": self.storage.db_name,
                "snapshot_store": self.snapshot_store.backend.value,
                "ipfs_api_url": self.snapshot_store.ipfs_api_url
                if self.snapshot_store.backend == SnapshotBackend.IPFS
                else None,
                "s3_bucket": self.snapshot_store.s3_bucket
                if self.snapshot_store.backend == SnapshotBackend.S3
                else None,
                "registry": self.registry.backend.value,
                "registry_name": self.registry.name,
                "ordering": self.ordering.backend.value,
                "max_chain_depth": self.chain.max_depth,
                "log_level": self.observability.log_level,
            },
        )
