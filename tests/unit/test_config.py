"""
Unit tests for service configuration.
"""

import pytest

from solvency.config import SolvencyConfig
from solvency.errors import ConfigurationError
from solvency.logging.core import LogLevel


class TestSolvencyConfig:
    """Test SolvencyConfig."""

    def test_defaults(self):
        config = SolvencyConfig()
        config.validate()
        assert config.storage_backend == "memory"
        assert config.jwt_algorithm == "HS256"

    def test_invalid_storage_backend(self):
        with pytest.raises(ConfigurationError) as exc_info:
            SolvencyConfig(storage_backend="redis").validate()
        assert exc_info.value.config_key == "storage_backend"

    def test_empty_operator(self):
        with pytest.raises(ConfigurationError):
            SolvencyConfig(operator="").validate()

    def test_component_errors_wrapped(self):
        config = SolvencyConfig()
        config.zkp.cache_size = 0
        with pytest.raises(ConfigurationError, match="Invalid zkp configuration"):
            config.validate()

    def test_dict_round_trip(self):
        config = SolvencyConfig(operator="op", verifiers=["auditor"], storage_backend="sqlite")
        restored = SolvencyConfig.from_dict(config.to_dict())
        assert restored.to_dict() == config.to_dict()

    def test_from_dict_partial(self):
        config = SolvencyConfig.from_dict({"operator": "op", "tree": {"max_workers": 2}})
        assert config.operator == "op"
        assert config.tree.max_workers == 2
        assert config.tree.parallel_threshold == 4096

    def test_from_dict_invalid(self):
        with pytest.raises(ConfigurationError):
            SolvencyConfig.from_dict({"zkp": {"cache_size": "lots"}})
        with pytest.raises(ConfigurationError):
            SolvencyConfig.from_dict({"log": {"level": "loud"}})

    def test_from_env(self, tmp_path):
        env = {
            "SOLVENCY_OPERATOR": "exchange",
            "SOLVENCY_VERIFIERS": "auditor-1, auditor-2",
            "SOLVENCY_STORAGE_BACKEND": "sqlite",
            "SOLVENCY_DATABASE_PATH": str(tmp_path / "db.sqlite"),
            "SOLVENCY_LOG_LEVEL": "debug",
            "SOLVENCY_LOG_FORMAT": "text",
            "SOLVENCY_CACHE_SIZE": "50",
            "SOLVENCY_CACHE_ENABLED": "false",
            "SOLVENCY_PARALLEL_THRESHOLD": "128",
            "SOLVENCY_JWT_SECRET": "s3cret",
            "SOLVENCY_JWT_TTL": "60",
            "UNRELATED": "ignored",
        }
        config = SolvencyConfig.from_env(env)
        assert config.operator == "exchange"
        assert config.verifiers == ["auditor-1", "auditor-2"]
        assert config.storage_backend == "sqlite"
        assert config.database.database_path.endswith("db.sqlite")
        assert config.log.level == LogLevel.DEBUG
        assert config.log.format_type == "text"
        assert config.zkp.cache_size == 50
        assert config.zkp.enable_verification_cache is False
        assert config.tree.parallel_threshold == 128
        assert config.jwt_secret == "s3cret"
        assert config.jwt_ttl == 60

    def test_from_env_empty(self):
        assert SolvencyConfig.from_env({}).to_dict() == SolvencyConfig().to_dict()

    def test_from_env_invalid(self):
        with pytest.raises(ConfigurationError):
            SolvencyConfig.from_env({"SOLVENCY_STORAGE_BACKEND": "tape"})
