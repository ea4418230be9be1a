# Purpose: Simple tests for settings_loader to ensure safe defaults, caching and typed getters.

import os

from core.config import DEFAULT_FILL_WORKERS
from core.settings_loader import (
    get_app_config,
    get_auth_settings,
    get_column_aliases,
    get_fill_workers,
    get_numbering_defaults,
    load_settings,
    reload_settings,
)


def test_load_settings_missing_file_returns_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv("BOND_GENERATOR_SETTINGS", str(tmp_path / "missing.yaml"))
    reload_settings()
    assert load_settings() == {}
    assert get_app_config() == {}
    assert get_numbering_defaults() == {"default_prefix": "BOND-", "min_width": 3}
    assert get_fill_workers() == DEFAULT_FILL_WORKERS
    assert get_auth_settings() == {"enabled": True, "api_tokens": {}}


def test_values_from_file(isolated_settings):
    assert get_app_config()["secret_key"] == "test"
    assert get_fill_workers() == 2
    assert get_auth_settings()["api_tokens"] == {"test-token": "test-user"}


def test_file_change_is_picked_up(isolated_settings):
    assert get_fill_workers() == 2
    isolated_settings.write_text("bond_generator:\n  filling:\n    max_workers: 7\n", encoding="utf-8")
    # Make sure the mtime moves even on coarse-grained filesystems
    stat = isolated_settings.stat()
    os.utime(isolated_settings, (stat.st_atime, stat.st_mtime + 5))
    assert get_fill_workers() == 7


def test_invalid_worker_count_falls_back(isolated_settings):
    isolated_settings.write_text("bond_generator:\n  filling:\n    max_workers: lots\n", encoding="utf-8")
    reload_settings()
    assert get_fill_workers() == DEFAULT_FILL_WORKERS


def test_column_aliases_extend_defaults(isolated_settings):
    isolated_settings.write_text(
        "bond_generator:\n  column_aliases:\n    cusip:\n      - security id\n", encoding="utf-8"
    )
    reload_settings()
    aliases = get_column_aliases()
    assert aliases["cusip"][0] == "security id"
    assert "cusip" in aliases["cusip"]
    assert "maturity date" in aliases["maturity_date"]


def test_malformed_yaml_returns_empty(isolated_settings):
    isolated_settings.write_text("app_config: [unclosed\n", encoding="utf-8")
    reload_settings()
    assert load_settings() == {}
