"""Test configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from gitlab_reaper.config import ReaperConfig


def test_config_from_file(support_dir: Path) -> None:
    """Test loading a config from a YAML file."""
    cfg = ReaperConfig.from_file(support_dir / "config.yaml")
    assert cfg.api_url == "https://gitlab.example.com/api/v4"
    assert cfg.token is not None
    assert cfg.token.get_secret_value() == "glpat-from-file"
    assert cfg.page_size == 50
    assert cfg.keep.keep_count == 10
    assert cfg.keep.name_pattern == "^dev-.*"
    assert cfg.debug
    assert cfg.fail_fast
    assert not cfg.dry_run


def test_empty_config_file(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")
    cfg = ReaperConfig.from_file(config_file)
    assert cfg.api_url == "https://gitlab.com/api/v4"
    assert cfg.token is None
    assert cfg.keep.to_params() == {"name_regex_delete": ".*", "keep_n": 5}
    assert not cfg.fail_fast


def test_snake_case_keys(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("page_size: 10\nkeep:\n  keep_count: 2\n")
    cfg = ReaperConfig.from_file(config_file)
    assert cfg.page_size == 10
    assert cfg.keep.to_params() == {"name_regex_delete": ".*", "keep_n": 2}


def test_page_size_bounds() -> None:
    with pytest.raises(ValidationError):
        ReaperConfig(page_size=0)
    with pytest.raises(ValidationError):
        ReaperConfig(page_size=101)


def test_token_hidden() -> None:
    cfg = ReaperConfig(token="glpat-secret")
    assert "glpat-secret" not in repr(cfg)
