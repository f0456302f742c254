"""
Service configuration.

``SolvencyConfig`` aggregates the per-component configs and can be built from
a dictionary or from ``SOLVENCY_*`` environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .crypto.merkle_sum import TreeConfig
from .crypto.zkp.core import ZKPConfig, ZKPType
from .errors.exceptions import ConfigurationError
from .logging.core import LogConfig, LogLevel
from .storage.database import DatabaseConfig

ENV_PREFIX = "SOLVENCY_"

_STORAGE_BACKENDS = ("memory", "sqlite")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SolvencyConfig:
    """Top-level configuration for ``SolvencyService``."""

    operator: str = "operator"
    verifiers: List[str] = field(default_factory=list)

    storage_backend: str = "memory"  # memory, sqlite
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    zkp: ZKPConfig = field(default_factory=ZKPConfig)
    tree: TreeConfig = field(default_factory=TreeConfig)
    log: LogConfig = field(default_factory=LogConfig)

    # Bearer tokens for the REST surface
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    jwt_ttl: int = 3600

    def validate(self) -> None:
        """Raise ``ConfigurationError`` for the first invalid setting."""
        if not self.operator:
            raise ConfigurationError("operator cannot be empty", config_key="operator")
        if self.storage_backend not in _STORAGE_BACKENDS:
            raise ConfigurationError(
                f"storage_backend must be one of {_STORAGE_BACKENDS}",
                config_key="storage_backend",
                config_value=self.storage_backend,
            )
        if self.jwt_ttl <= 0:
            raise ConfigurationError(
                "jwt_ttl must be positive", config_key="jwt_ttl", config_value=self.jwt_ttl
            )

        for key, component in (
            ("database", self.database),
            ("zkp", self.zkp),
            ("tree", self.tree),
            ("log", self.log),
        ):
            try:
                component.validate()
            except ValueError as e:
                raise ConfigurationError(f"Invalid {key} configuration: {e}", config_key=key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operator": self.operator,
            "verifiers": list(self.verifiers),
            "storage_backend": self.storage_backend,
            "database": {
                "database_path": self.database.database_path,
                "connection_timeout": self.database.connection_timeout,
                "synchronous": self.database.synchronous,
                "journal_mode": self.database.journal_mode,
            },
            "zkp": {
                "backend_type": self.zkp.backend_type.value,
                "max_proof_size": self.zkp.max_proof_size,
                "cache_size": self.zkp.cache_size,
                "cache_ttl": self.zkp.cache_ttl,
                "enable_verification_cache": self.zkp.enable_verification_cache,
                "enable_batch_verification": self.zkp.enable_batch_verification,
                "max_batch_size": self.zkp.max_batch_size,
                "batch_workers": self.zkp.batch_workers,
            },
            "tree": {
                "parallel_threshold": self.tree.parallel_threshold,
                "max_workers": self.tree.max_workers,
            },
            "log": {
                "level": self.log.level.name,
                "format_type": self.log.format_type,
                "handlers": list(self.log.handlers),
                "log_file": self.log.log_file,
            },
            "jwt_algorithm": self.jwt_algorithm,
            "jwt_ttl": self.jwt_ttl,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SolvencyConfig":
        """Create from dictionary; missing keys keep their defaults."""
        try:
            database = data.get("database", {})
            zkp = data.get("zkp", {})
            tree = data.get("tree", {})
            log = data.get("log", {})

            config = cls(
                operator=data.get("operator", "operator"),
                verifiers=list(data.get("verifiers", [])),
                storage_backend=data.get("storage_backend", "memory"),
                database=DatabaseConfig(
                    database_path=database.get("database_path", "solvency.db"),
                    connection_timeout=float(database.get("connection_timeout", 30.0)),
                    synchronous=database.get("synchronous", "FULL"),
                    journal_mode=database.get("journal_mode", "WAL"),
                ),
                zkp=ZKPConfig(
                    backend_type=ZKPType(zkp.get("backend_type", ZKPType.TRANSPARENT.value)),
                    max_proof_size=int(zkp.get("max_proof_size", 64 * 1024 * 1024)),
                    cache_size=int(zkp.get("cache_size", 1000)),
                    cache_ttl=float(zkp.get("cache_ttl", 3600.0)),
                    enable_verification_cache=bool(zkp.get("enable_verification_cache", True)),
                    enable_batch_verification=bool(zkp.get("enable_batch_verification", True)),
                    max_batch_size=int(zkp.get("max_batch_size", 256)),
                    batch_workers=int(zkp.get("batch_workers", 4)),
                ),
                tree=TreeConfig(
                    parallel_threshold=int(tree.get("parallel_threshold", 4096)),
                    max_workers=int(tree.get("max_workers", 4)),
                ),
                log=LogConfig(
                    level=LogLevel.from_name(log.get("level", "INFO")),
                    format_type=log.get("format_type", "json"),
                    handlers=list(log.get("handlers", ["console"])),
                    log_file=log.get("log_file"),
                ),
                jwt_secret=data.get("jwt_secret"),
                jwt_algorithm=data.get("jwt_algorithm", "HS256"),
                jwt_ttl=int(data.get("jwt_ttl", 3600)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

        config.validate()
        return config

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SolvencyConfig":
        """
        Build a config from ``SOLVENCY_*`` variables.

        Recognized: OPERATOR, VERIFIERS (comma-separated), STORAGE_BACKEND,
        DATABASE_PATH, LOG_LEVEL, LOG_FORMAT, LOG_HANDLERS (comma-separated),
        LOG_FILE, CACHE_SIZE, BATCH_WORKERS, PARALLEL_THRESHOLD,
        TREE_WORKERS, JWT_SECRET, JWT_ALGORITHM, JWT_TTL.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            return env.get(ENV_PREFIX + name)

        data: Dict[str, Any] = {"database": {}, "zkp": {}, "tree": {}, "log": {}}
        if get("OPERATOR"):
            data["operator"] = get("OPERATOR")
        if get("VERIFIERS"):
            data["verifiers"] = [v.strip() for v in get("VERIFIERS").split(",") if v.strip()]
        if get("STORAGE_BACKEND"):
            data["storage_backend"] = get("STORAGE_BACKEND")
        if get("DATABASE_PATH"):
            data["database"]["database_path"] = get("DATABASE_PATH")
        if get("LOG_LEVEL"):
            data["log"]["level"] = get("LOG_LEVEL")
        if get("LOG_FORMAT"):
            data["log"]["format_type"] = get("LOG_FORMAT")
        if get("LOG_HANDLERS"):
            data["log"]["handlers"] = [h.strip() for h in get("LOG_HANDLERS").split(",")]
        if get("LOG_FILE"):
            data["log"]["log_file"] = get("LOG_FILE")
        if get("CACHE_SIZE"):
            data["zkp"]["cache_size"] = get("CACHE_SIZE")
        if get("CACHE_ENABLED"):
            data["zkp"]["enable_verification_cache"] = _parse_bool(get("CACHE_ENABLED"))
        if get("BATCH_WORKERS"):
            data["zkp"]["batch_workers"] = get("BATCH_WORKERS")
        if get("PARALLEL_THRESHOLD"):
            data["tree"]["parallel_threshold"] = get("PARALLEL_THRESHOLD")
        if get("TREE_WORKERS"):
            data["tree"]["max_workers"] = get("TREE_WORKERS")
        if get("JWT_SECRET"):
            data["jwt_secret"] = get("JWT_SECRET")
        if get("JWT_ALGORITHM"):
            data["jwt_algorithm"] = get("JWT_ALGORITHM")
        if get("JWT_TTL"):
            data["jwt_ttl"] = get("JWT_TTL")

        return cls.from_dict(data)
