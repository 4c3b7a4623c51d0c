"""Tests for config.yaml loading and environment overrides."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from skscp.config import DEFAULT_PORT, ENV_OVERRIDES, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's SKSCP_* variables out of these tests."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)


def _write(home: Path, data) -> None:
    home.mkdir(parents=True, exist_ok=True)
    text = data if isinstance(data, str) else yaml.safe_dump(data)
    (home / "config.yaml").write_text(text)


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "home")
        assert config.workspace is None
        assert config.agent == ""
        assert config.token == ""
        assert config.host == "127.0.0.1"
        assert config.port == DEFAULT_PORT == 7780
        assert config.remote == ""

    def test_reads_yaml(self, tmp_path: Path) -> None:
        home = tmp_path / "home"
        _write(home, {
            "workspace": str(tmp_path / "clawd"),
            "agent": "lumina",
            "token": "s3cret",
            "port": 9001,
            "remote": "http://studio.local:7780",
        })
        config = load_config(home)
        assert config.workspace == tmp_path / "clawd"
        assert config.agent == "lumina"
        assert config.token == "s3cret"
        assert config.port == 9001
        assert config.remote == "http://studio.local:7780"

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch) -> None:
        home = tmp_path / "home"
        _write(home, {"agent": "lumina", "port": 9001})
        monkeypatch.setenv("SKSCP_AGENT", "opus")
        monkeypatch.setenv("SKSCP_PORT", "7001")
        config = load_config(home)
        assert config.agent == "opus"
        assert config.port == 7001

    def test_workspace_expanded(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("SKSCP_WORKSPACE", "~/clawd")
        config = load_config(tmp_path / "home")
        assert config.workspace == tmp_path / "clawd"

    def test_unknown_keys_ignored(self, tmp_path: Path) -> None:
        home = tmp_path / "home"
        _write(home, {"agent": "lumina", "colour": "blue"})
        assert load_config(home).agent == "lumina"

    def test_invalid_yaml_falls_back(self, tmp_path: Path) -> None:
        home = tmp_path / "home"
        _write(home, "agent: [unclosed")
        assert load_config(home).agent == ""

    def test_non_mapping_falls_back(self, tmp_path: Path) -> None:
        home = tmp_path / "home"
        _write(home, "- just\n- a list\n")
        assert load_config(home).port == DEFAULT_PORT

    def test_invalid_values_fall_back(self, tmp_path: Path) -> None:
        home = tmp_path / "home"
        _write(home, {"port": "not-a-port"})
        assert load_config(home).port == DEFAULT_PORT

    def test_invalid_value_keeps_other_settings(self, tmp_path: Path, monkeypatch) -> None:
        """A bad SKSCP_PORT drops only the port, not the token or remote."""
        home = tmp_path / "home"
        _write(home, {
            "workspace": str(tmp_path / "clawd"),
            "token": "s3cret",
            "remote": "http://studio.local:7780",
        })
        monkeypatch.setenv("SKSCP_PORT", "abc")
        config = load_config(home)
        assert config.port == DEFAULT_PORT
        assert config.token == "s3cret"
        assert config.remote == "http://studio.local:7780"
        assert config.workspace == tmp_path / "clawd"
