"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- FetchConfig: Abstract retrieval settings (EDirect CLI or E-utilities HTTP)
- SanitizeConfig: Extra named-entity substitutions for the XML sanitizer
- BatchConfig: Chunk size and run-lock location
- StorageConfig: SQLite database location
- LoggingConfig: Logging behavior
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Any

import yaml


@dataclass
class FetchConfig:
    """Configuration for abstract retrieval.

    Attributes:
        backend: "edirect" to shell out to the EDirect CLI, "eutils" for HTTP
        edirect_dir: Directory holding the esearch/efetch executables
        database: Entrez database queried by every request
        timeout_seconds: Process/request timeout, None waits indefinitely
        retries: Retry attempts for transient HTTP failures (eutils only)
        base_url: E-utilities base URL (eutils only)
        api_key: Optional inline NCBI API key (overrides env var)
        api_key_env: Environment variable name containing the NCBI API key
        email: Contact email sent with E-utilities requests
        trust_env: Whether to respect system proxy settings
    """

    backend: str = "edirect"
    edirect_dir: str = "edirect"
    database: str = "pubmed"
    timeout_seconds: float | None = 300.0
    retries: int = 2
    base_url: str = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
    api_key: str | None = None
    api_key_env: str = "NCBI_API_KEY"
    email: str | None = None
    trust_env: bool = True


@dataclass
class SanitizeConfig:
    """Configuration for XML sanitization.

    Attributes:
        named_entities: Extra ``&name;`` -> ``&#N;`` substitutions merged over
            the built-in Greek-letter table
    """

    named_entities: dict[str, str] = field(default_factory=dict)


@dataclass
class BatchConfig:
    """Configuration for batch processing.

    Attributes:
        chunk_size: Number of identifiers fetched per external request
        lock_dir: Directory for run-lock files
    """

    chunk_size: int = 50
    lock_dir: str = ".locks"


@dataclass
class StorageConfig:
    """Configuration for the article/mutation store.

    Attributes:
        db_path: Path to the SQLite database file
    """

    db_path: str = "mutations.sqlite3"


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the main log file
        log_dir: Directory the log file is written to
    """

    level: str = "INFO"
    console: bool = True
    file: bool = True
    format: str = "jsonl"
    filename: str = "run.jsonl"
    log_dir: str = "logs"


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    fetch: FetchConfig = field(default_factory=FetchConfig)
    sanitize: SanitizeConfig = field(default_factory=SanitizeConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return validate_config(_merge_config(AppConfig(), raw))


def validate_config(cfg: AppConfig) -> AppConfig:
    """Reject values the pipeline cannot run with.

    Raises:
        ValueError: If a setting is out of range
    """
    if int(cfg.batch.chunk_size) < 1:
        raise ValueError(f"batch.chunk_size must be at least 1, got {cfg.batch.chunk_size}")
    if int(cfg.fetch.retries) < 0:
        raise ValueError(f"fetch.retries must not be negative, got {cfg.fetch.retries}")
    return cfg


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = _asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            data[key].update(value)
        else:
            data[key] = value
    return _fromdict(data)


def _asdict(cfg: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to nested dictionary."""
    return {
        "fetch": {
            "backend": cfg.fetch.backend,
            "edirect_dir": cfg.fetch.edirect_dir,
            "database": cfg.fetch.database,
            "timeout_seconds": cfg.fetch.timeout_seconds,
            "retries": cfg.fetch.retries,
            "base_url": cfg.fetch.base_url,
            "api_key": cfg.fetch.api_key,
            "api_key_env": cfg.fetch.api_key_env,
            "email": cfg.fetch.email,
            "trust_env": cfg.fetch.trust_env,
        },
        "sanitize": {
            "named_entities": dict(cfg.sanitize.named_entities),
        },
        "batch": {
            "chunk_size": cfg.batch.chunk_size,
            "lock_dir": cfg.batch.lock_dir,
        },
        "storage": {
            "db_path": cfg.storage.db_path,
        },
        "logging": {
            "level": cfg.logging.level,
            "console": cfg.logging.console,
            "file": cfg.logging.file,
            "format": cfg.logging.format,
            "filename": cfg.logging.filename,
            "log_dir": cfg.logging.log_dir,
        },
    }


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    return AppConfig(
        fetch=FetchConfig(**data["fetch"]),
        sanitize=SanitizeConfig(**data["sanitize"]),
        batch=BatchConfig(**data["batch"]),
        storage=StorageConfig(**data["storage"]),
        logging=LoggingConfig(**data["logging"]),
    )


def get_api_key(cfg: FetchConfig) -> str | None:
    """Get NCBI API key from inline config or environment variable."""
    if cfg.api_key:
        return cfg.api_key
    return os.getenv(cfg.api_key_env)
