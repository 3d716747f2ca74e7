"""Tests for configuration loading."""

from __future__ import annotations

import pytest

from pipectl.kernel.config.loader import ConfigLoader, _parse_bool_env, load_config
from pipectl.kernel.config.models import PipectlConfig, ReconcilerConfig
from pipectl.kernel.exceptions import ConfigurationError, ValidationError

# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


class TestYamlConfig:
    def test_kind_config(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("REDPANDA_TOKEN", "secret-token")
        path = tmp_path / "pipectl.yaml"
        path.write_text(
            """kind: Config
spec:
  state_file: .pipectl/state.json
  connection:
    auth_token: ${REDPANDA_TOKEN}
    request_timeout: 5
  reconciler:
    poll_interval: 0.5
    operation_timeout: 300
  logging:
    level: debug
    format: json
"""
        )
        config = load_config(path)

        assert config.state_file == ".pipectl/state.json"
        assert config.connection.auth_token == "secret-token"
        assert config.connection.request_timeout == 5.0
        assert config.reconciler == ReconcilerConfig(poll_interval=0.5, operation_timeout=300.0)
        assert config.logging.level == "DEBUG"
        assert config.logging.format == "json"

    def test_unknown_placeholder_is_kept(self, tmp_path) -> None:
        path = tmp_path / "pipectl.yaml"
        path.write_text("kind: Config\nspec:\n  connection:\n    auth_token: ${NOPE_NOT_SET}\n")
        assert load_config(path).connection.auth_token == "${NOPE_NOT_SET}"

    def test_wrong_kind(self, tmp_path) -> None:
        path = tmp_path / "pipectl.yaml"
        path.write_text("kind: Pipeline\nspec: {}\n")
        with pytest.raises(ConfigurationError, match="kind: Config"):
            load_config(path)

    def test_bad_log_level(self, tmp_path) -> None:
        path = tmp_path / "pipectl.yaml"
        path.write_text("kind: Config\nspec:\n  logging:\n    level: chatty\n")
        with pytest.raises(ConfigurationError, match="logging.level"):
            load_config(path)

    def test_explicit_missing_path(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")


class TestPyprojectConfig:
    def test_tool_table_is_discovered(self, tmp_path, monkeypatch) -> None:
        (tmp_path / "pyproject.toml").write_text(
            '[tool.pipectl]\nstate_file = "state.json"\n\n'
            "[tool.pipectl.reconciler]\noperation_timeout = 60\n"
        )
        nested = tmp_path / "sub" / "dir"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)

        config = load_config()

        assert config.state_file == "state.json"
        assert config.reconciler.operation_timeout == 60.0

    def test_defaults_when_nothing_found(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        config = load_config()
        assert config.state_file == PipectlConfig().state_file
        assert config.reconciler == ReconcilerConfig()

    def test_config_path_env(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text("kind: Config\nspec:\n  state_file: from-env.json\n")
        monkeypatch.setenv("PIPECTL_CONFIG_PATH", str(path))
        monkeypatch.chdir(tmp_path)
        assert load_config().state_file == "from-env.json"


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------


class TestEnvOverrides:
    def test_logging_and_token_overrides(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PIPECTL_LOG_LEVEL", "warning")
        monkeypatch.setenv("PIPECTL_LOG_FORMAT", "CONSOLE")
        monkeypatch.setenv("PIPECTL_LOG_COLOR", "off")
        monkeypatch.setenv("PIPECTL_AUTH_TOKEN", "env-token")

        config = load_config()

        assert config.logging.level == "WARNING"
        assert config.logging.format == "console"
        assert config.logging.use_color is False
        assert config.connection.auth_token == "env-token"

    def test_invalid_color_value_is_ignored(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PIPECTL_LOG_COLOR", "sometimes")
        assert load_config().logging.use_color is True

    @pytest.mark.parametrize(("raw", "expected"), [("yes", True), ("0", False), (" On ", True)])
    def test_parse_bool_env(self, raw: str, expected: bool) -> None:
        assert _parse_bool_env(raw) is expected

    def test_parse_bool_env_rejects_garbage(self) -> None:
        with pytest.raises(ValueError, match="Invalid boolean"):
            _parse_bool_env("maybe")


def test_reconciler_config_validation() -> None:
    with pytest.raises(ValidationError):
        ReconcilerConfig(poll_interval=0)
    with pytest.raises(ValidationError):
        ReconcilerConfig(max_interval_factor=0.5)


def test_substitute_env_vars_recurses(monkeypatch) -> None:
    monkeypatch.setenv("A", "1")
    loader = ConfigLoader()
    assert loader._substitute_env_vars({"x": ["${A}", {"y": "v${A}"}], "n": 3}) == {
        "x": ["1", {"y": "v1"}],
        "n": 3,
    }
