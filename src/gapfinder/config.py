"""Configuration management for gapfinder."""

import copy
import os
from pathlib import Path
from typing import Any

import yaml


DEFAULT_CONFIG = {
    "database_url": "sqlite:///~/.gapfinder/gapfinder.db",
    "files_path": "~/.gapfinder/files",
    "chroma_path": "~/.gapfinder/chroma",
    "storage_backend": "chromadb",
    "embedding_model": "intfloat/e5-base-v2",
    "embedding_dim": 768,
    "embedding_batch_size": 25,
    "claude_model": "claude-sonnet-4-20250514",
    "log_level": "INFO",
    "chunking": {"chunk_size": 1000, "overlap": 200},
    "ingestion": {"insert_batch_size": 5, "summary_max_chars": 8000, "timeout_seconds": 300},
    "retrieval": {"match_count": 8, "match_threshold": 0.7, "answer_threshold": 0.65, "max_sources": 3},
    "clustering": {"similarity_threshold": 0.82, "alert_threshold": 5, "max_batch_questions": 500},
    "generation": {"answer_max_tokens": 1024, "answer_temperature": 0.7},
    "alerts": {"app_url": "http://localhost:3000", "label_sample_size": 10, "evidence_count": 3},
    "email": {"resend_api_key": None, "from": "Gapfinder <noreply@gapfinder.local>"},
}

_ENV_OVERRIDES = [
    ("ANTHROPIC_API_KEY", ("claude_api_key",)),
    ("RESEND_API_KEY", ("email", "resend_api_key")),
    ("EMAIL_FROM", ("email", "from")),
    ("GAPFINDER_APP_URL", ("alerts", "app_url")),
    ("GAPFINDER_DATABASE_URL", ("database_url",)),
]


def _find_config_file() -> Path | None:
    """Look for config.yaml in standard locations."""
    candidates = [
        Path.cwd() / "config" / "config.yaml",
        Path.cwd() / "config.yaml",
        Path.home() / ".gapfinder" / "config.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p
    return None


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration, merging defaults with file and env vars."""
    cfg = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else _find_config_file()
    if path and path.exists():
        with open(path) as f:
            file_cfg = yaml.safe_load(f) or {}
        _deep_merge(cfg, file_cfg)

    # Env overrides
    for var, keys in _ENV_OVERRIDES:
        if value := os.environ.get(var):
            target = cfg
            for k in keys[:-1]:
                target = target.setdefault(k, {})
            target[keys[-1]] = value

    # Expand paths
    for key in ("files_path", "chroma_path"):
        cfg[key] = str(Path(cfg[key]).expanduser().resolve())
    cfg["database_url"] = expand_sqlite_url(cfg["database_url"])

    return cfg


def expand_sqlite_url(url: str) -> str:
    """Expand ``~`` in a file-backed sqlite URL; other URLs pass through."""
    prefix = "sqlite:///"
    if not url.startswith(prefix) or url == prefix:
        return url
    db_path = Path(url[len(prefix):]).expanduser().resolve()
    return f"{prefix}{db_path}"


def _deep_merge(base: dict, override: dict) -> None:
    """Merge override into base in-place."""
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
