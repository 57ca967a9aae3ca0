"""Tests for configuration loading."""

import pytest

from site_analytics.common.config.settings import PipelineConfig, QueueConfig, RedisConfig, load_config


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "test.yaml"
    path.write_text(
        "redis:\n"
        "  host: ${TEST_REDIS_HOST:redis.local}\n"
        "  port: ${TEST_REDIS_PORT:6380}\n"
        "  password: ${TEST_REDIS_PASSWORD:}\n"
        "queue:\n"
        "  name: analytics:events\n"
        "database:\n"
        "  host: db.local\n"
        "  create_schema: ${TEST_CREATE_SCHEMA:false}\n"
        "worker:\n"
        "  backoff_seconds: 1\n"
        "logging:\n"
        "  level: DEBUG\n"
        "  format: json\n"
    )
    return str(path)


class TestLoadConfig:

    def test_defaults_from_file(self, config_file, monkeypatch):
        for name in ("TEST_REDIS_HOST", "TEST_REDIS_PORT", "TEST_REDIS_PASSWORD", "TEST_CREATE_SCHEMA"):
            monkeypatch.delenv(name, raising=False)

        config = load_config(config_file)

        assert config.redis.host == "redis.local"
        assert config.redis.port == 6380
        assert config.redis.password is None
        assert config.database.create_schema is False
        assert config.logging.format == "json"

    def test_environment_overrides(self, config_file, monkeypatch):
        monkeypatch.setenv("TEST_REDIS_HOST", "10.0.0.5")
        monkeypatch.setenv("TEST_REDIS_PORT", "7000")
        monkeypatch.setenv("TEST_CREATE_SCHEMA", "true")

        config = load_config(config_file)

        assert config.redis.host == "10.0.0.5"
        assert config.redis.port == 7000
        assert config.database.create_schema is True

    def test_missing_sections_use_defaults(self, config_file):
        config = load_config(config_file)

        assert config.queue.dequeue_timeout_seconds == 5
        assert config.worker.drain_seconds == 2.0
        assert config.worker.log_every == 100
        assert config.database.pool_max_size == 20
        assert config.api.port == 3000

    def test_bundled_local_config_loads(self):
        import pathlib

        local = pathlib.Path(__file__).resolve().parents[2] / "config" / "local.yaml"

        assert isinstance(load_config(str(local)), PipelineConfig)


class TestQueueTimeouts:

    def test_dequeue_wait_must_fit_inside_socket_timeout(self, tmp_path):
        path = tmp_path / "slow.yaml"
        path.write_text(
            "redis:\n"
            "  socket_timeout: 5\n"
            "queue:\n"
            "  dequeue_timeout_seconds: 5\n"
        )

        with pytest.raises(ValueError, match="socket_timeout"):
            load_config(str(path))

    def test_shorter_dequeue_wait_accepted(self):
        config = PipelineConfig(
            redis=RedisConfig(socket_timeout=10.0),
            queue=QueueConfig(dequeue_timeout_seconds=5)
        )

        assert config.queue.dequeue_timeout_seconds == 5
