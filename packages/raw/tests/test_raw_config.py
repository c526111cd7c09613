"""Tests for configuration loading."""

import pytest

from scorecard_raw.config import CHECK_NAMES, DEFAULT_CONFIG, load_config


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["commit_depth"] == 30
    assert config["depsdev_base_url"] == "https://api.deps.dev/v3alpha"
    assert config["http_timeout"] == 15
    assert config["checks"] == list(CHECK_NAMES)
    assert config["exclude_paths"] == ["testdata/", "src/test/"]


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".scorecard.yml"
    cfg.write_text("commit_depth: 100\nchecks:\n  - license\n  - webhooks\n")
    config = load_config(config_path=str(cfg))
    assert config["commit_depth"] == 100
    assert config["checks"] == ["license", "webhooks"]


def test_empty_config_file(tmp_path):
    cfg = tmp_path / ".scorecard.yml"
    cfg.write_text("")
    config = load_config(config_path=str(cfg))
    assert config["commit_depth"] == 30


def test_non_mapping_config_file_rejected(tmp_path):
    cfg = tmp_path / ".scorecard.yml"
    cfg.write_text("- license\n- webhooks\n")
    with pytest.raises(ValueError, match="must contain a mapping, got list"):
        load_config(config_path=str(cfg))


def test_overrides_win_over_config_file(tmp_path):
    cfg = tmp_path / ".scorecard.yml"
    cfg.write_text("http_timeout: 30\n")
    config = load_config(config_path=str(cfg), overrides={"http_timeout": 5})
    assert config["http_timeout"] == 5


def test_none_overrides_ignored(tmp_path):
    cfg = tmp_path / ".scorecard.yml"
    cfg.write_text("http_timeout: 30\n")
    config = load_config(config_path=str(cfg), overrides={"http_timeout": None})
    assert config["http_timeout"] == 30


def test_lists_not_shared_between_configs(tmp_path):
    first = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    first["checks"].remove("webhooks")
    first["exclude_paths"].append("vendor/")
    second = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert "webhooks" in second["checks"]
    assert "vendor/" not in second["exclude_paths"]
    assert "webhooks" in DEFAULT_CONFIG["checks"]


def test_env_vars_loaded(monkeypatch, tmp_path):
    monkeypatch.setenv("GITHUB_TOKEN", "gh-token")
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["github_token"] == "gh-token"


def test_missing_env_vars_are_none(monkeypatch, tmp_path):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["github_token"] is None
