"""Tests for configuration loading."""

from pathlib import Path

import pytest
import yaml

from gapfinder.config import DEFAULT_CONFIG, expand_sqlite_url, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("ANTHROPIC_API_KEY", "RESEND_API_KEY", "EMAIL_FROM", "GAPFINDER_APP_URL", "GAPFINDER_DATABASE_URL"):
        monkeypatch.delenv(var, raising=False)


def test_defaults(tmp_path):
    cfg = load_config(tmp_path / "missing.yaml")
    assert cfg["retrieval"] == DEFAULT_CONFIG["retrieval"]
    assert cfg["clustering"]["alert_threshold"] == 5
    assert cfg["clustering"]["similarity_threshold"] == 0.82
    assert Path(cfg["files_path"]).is_absolute()
    assert "~" not in cfg["database_url"]


def test_file_is_deep_merged(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({
        "retrieval": {"match_threshold": 0.5},
        "email": {"resend_api_key": "re_file"},
        "storage_backend": "sql",
    }))
    cfg = load_config(path)
    assert cfg["retrieval"]["match_threshold"] == 0.5
    assert cfg["retrieval"]["answer_threshold"] == 0.65
    assert cfg["email"]["resend_api_key"] == "re_file"
    assert cfg["email"]["from"] == DEFAULT_CONFIG["email"]["from"]
    assert cfg["storage_backend"] == "sql"
    assert DEFAULT_CONFIG["retrieval"]["match_threshold"] == 0.7


def test_empty_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert load_config(path)["embedding_dim"] == 768


def test_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"email": {"resend_api_key": "re_file"}}))
    monkeypatch.setenv("RESEND_API_KEY", "re_env")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    monkeypatch.setenv("GAPFINDER_APP_URL", "https://gaps.example.com")

    cfg = load_config(path)
    assert cfg["email"]["resend_api_key"] == "re_env"
    assert cfg["claude_api_key"] == "sk-ant-test"
    assert cfg["alerts"]["app_url"] == "https://gaps.example.com"


def test_expand_sqlite_url():
    expanded = expand_sqlite_url("sqlite:///~/x/gapfinder.db")
    assert expanded.startswith("sqlite:////")
    assert expanded.endswith("/x/gapfinder.db")
    assert expand_sqlite_url("sqlite://") == "sqlite://"
    assert expand_sqlite_url("postgresql://u@h/db") == "postgresql://u@h/db"
