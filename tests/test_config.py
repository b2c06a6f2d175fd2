"""Tests for configuration loading."""

import os

import pytest

from rtmx.config import AppConfig, _interpolate_env, find_config, load_config, load_config_from_dir
from rtmx.errors import SchemaError


class TestConfig:
    def test_default_config(self, tmp_path):
        config = load_config(tmp_path / "nonexistent.yaml")
        assert config.rtmx.database == ".rtmx/database.csv"
        assert config.rtmx.sync.conflict_resolution == "manual"
        assert config.rtmx.adapters.github.token_env == "GITHUB_TOKEN"
        assert not config.rtmx.adapters.jira.enabled
        assert config.phase_description(1) == "Foundation"
        assert config.phase_description(9) == "Phase 9"

    def test_env_interpolation(self):
        os.environ["TEST_RTMX_VAR"] = "hello"
        try:
            assert _interpolate_env("${TEST_RTMX_VAR}") == "hello"
            assert _interpolate_env("prefix_${TEST_RTMX_VAR}_suffix") == "prefix_hello_suffix"
        finally:
            del os.environ["TEST_RTMX_VAR"]

    def test_missing_env_var_kept(self):
        result = _interpolate_env("${NONEXISTENT_RTMX_VAR_12345}")
        assert result == "${NONEXISTENT_RTMX_VAR_12345}"

    def test_load_yaml_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_RTMX_SERVER", "https://acme.atlassian.net")
        path = tmp_path / "rtmx.yaml"
        path.write_text(
            "rtmx:\n"
            "  database: docs/rtm.csv\n"
            "  phases:\n"
            "    1: Bootstrap\n"
            "  adapters:\n"
            "    jira:\n"
            "      enabled: true\n"
            "      server: ${TEST_RTMX_SERVER}\n"
            "      project: RTM\n"
            "      status_mapping:\n"
            "        Shipped: COMPLETE\n"
        )
        config = load_config(path)
        jira = config.rtmx.adapters.jira
        assert jira.enabled
        assert jira.server == "https://acme.atlassian.net"
        assert jira.status_mapping == {"Shipped": "COMPLETE"}
        assert config.phase_description(1) == "Bootstrap"
        assert config.database_path() == tmp_path.resolve() / "docs" / "rtm.csv"

    def test_dot_rtmx_config_resolves_from_project_root(self, tmp_path):
        config_dir = tmp_path / ".rtmx"
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text("rtmx:\n  database: .rtmx/database.csv\n")
        config = load_config(config_dir / "config.yaml")
        assert config.base_dir == tmp_path.resolve()
        assert config.database_path() == tmp_path.resolve() / ".rtmx" / "database.csv"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "rtmx.yaml"
        path.write_text("")
        assert load_config(path).rtmx.database == ".rtmx/database.csv"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "rtmx.yaml"
        path.write_text("rtmx: [unclosed\n")
        with pytest.raises(SchemaError, match="failed to parse"):
            load_config(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "rtmx.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(SchemaError, match="mapping"):
            load_config(path)

    def test_invalid_field_type(self, tmp_path):
        path = tmp_path / "rtmx.yaml"
        path.write_text("rtmx:\n  phases: not-a-mapping\n")
        with pytest.raises(SchemaError, match="invalid config"):
            load_config(path)


class TestFindConfig:
    def test_searches_parents(self, tmp_path):
        (tmp_path / "rtmx.yaml").write_text("rtmx: {}\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config(nested) == tmp_path.resolve() / "rtmx.yaml"

    def test_dot_rtmx_preferred(self, tmp_path):
        (tmp_path / "rtmx.yaml").write_text("rtmx: {}\n")
        (tmp_path / ".rtmx").mkdir()
        (tmp_path / ".rtmx" / "config.yaml").write_text("rtmx: {}\n")
        assert find_config(tmp_path) == tmp_path.resolve() / ".rtmx" / "config.yaml"

    def test_load_from_dir_without_config(self, tmp_path, monkeypatch):
        monkeypatch.setattr("rtmx.config.find_config", lambda start: None)
        config = load_config_from_dir(tmp_path)
        assert isinstance(config, AppConfig)
        assert config.base_dir == tmp_path.resolve()
