"""Tests for configuration loading."""

import pytest

from mutation_miner.config import AppConfig, FetchConfig, get_api_key, load_config, validate_config


def test_defaults_without_file():
    cfg = load_config(None)
    assert cfg == AppConfig()
    assert cfg.batch.chunk_size == 50
    assert cfg.fetch.backend == "edirect"
    assert cfg.fetch.database == "pubmed"


def test_yaml_sections_merge_over_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "fetch:\n"
        "  backend: eutils\n"
        "  retries: 5\n"
        "batch:\n"
        "  chunk_size: 10\n"
        "sanitize:\n"
        "  named_entities:\n"
        '    "&nu;": "&#957;"\n'
        "unknown_section:\n"
        "  ignored: true\n",
        encoding="utf-8",
    )
    cfg = load_config(str(path))

    assert cfg.fetch.backend == "eutils"
    assert cfg.fetch.retries == 5
    assert cfg.fetch.edirect_dir == "edirect"
    assert cfg.batch.chunk_size == 10
    assert cfg.batch.lock_dir == ".locks"
    assert cfg.sanitize.named_entities == {"&nu;": "&#957;"}
    assert cfg.logging.level == "INFO"


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(str(path)) == AppConfig()


def test_api_key_prefers_inline_value(monkeypatch):
    monkeypatch.setenv("NCBI_API_KEY", "from-env")
    assert get_api_key(FetchConfig()) == "from-env"
    assert get_api_key(FetchConfig(api_key="inline")) == "inline"


def test_api_key_custom_env_name(monkeypatch):
    monkeypatch.delenv("NCBI_API_KEY", raising=False)
    monkeypatch.setenv("MY_NCBI_KEY", "abc")
    assert get_api_key(FetchConfig()) is None
    assert get_api_key(FetchConfig(api_key_env="MY_NCBI_KEY")) == "abc"


def test_zero_chunk_size_is_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("batch:\n  chunk_size: 0\n", encoding="utf-8")
    with pytest.raises(ValueError, match="chunk_size"):
        load_config(str(path))


def test_negative_retries_are_rejected():
    cfg = AppConfig()
    cfg.fetch.retries = -1
    with pytest.raises(ValueError, match="retries"):
        validate_config(cfg)
