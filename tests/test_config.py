"""
Tests for environment-driven configuration
"""

import pytest

from lending_core.config import LendingConfig, get_config, reload_config
from lending_core.api.system import page_limit


@pytest.fixture
def env(monkeypatch):
    yield monkeypatch
    monkeypatch.undo()
    reload_config()


class TestLendingConfig:

    def test_defaults(self):
        config = LendingConfig(_env_file=None)
        assert config.use_sqlite is True
        assert config.database_path == "lending.db"
        assert config.default_page_limit == 100
        assert config.enable_audit_logging is True

    def test_reload_reads_prefixed_environment(self, env):
        env.setenv("LENDING_DATABASE_PATH", "/tmp/book.db")
        env.setenv("LENDING_USE_SQLITE", "false")
        env.setenv("LENDING_MAX_PAGE_LIMIT", "50")

        config = reload_config()

        assert config is get_config()
        assert config.database_path == "/tmp/book.db"
        assert config.use_sqlite is False
        assert config.max_page_limit == 50

    def test_page_limit(self, env):
        env.setenv("LENDING_DEFAULT_PAGE_LIMIT", "20")
        env.setenv("LENDING_MAX_PAGE_LIMIT", "50")
        reload_config()

        assert page_limit(None) == 20
        assert page_limit(0) == 20
        assert page_limit(10) == 10
        assert page_limit(500) == 50
