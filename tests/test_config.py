"""Tests for model options and config file loading."""

import json

import pytest
from ninja_unimodel.config import ModelOptions, UnimodelConfig
from pydantic import ValidationError


def test_defaults():
    opts = ModelOptions()
    assert opts.max_query_limit == 1000
    assert opts.allow_full_replace is False
    assert opts.aggregate.allow_unknown_stats is True
    assert opts.aggregate.strict_field_paths is True


def test_unknown_option_rejected():
    with pytest.raises(ValidationError):
        ModelOptions(page_size=10)


def test_from_file(tmp_path):
    path = tmp_path / "unimodel.json"
    path.write_text(
        json.dumps({"Animal": {"max_query_limit": 50, "aggregate": {"allowUnknownStats": False}}}),
        encoding="utf-8",
    )
    config = UnimodelConfig.from_file(path)
    assert config.model_names == ["Animal"]
    opts = config.options_for("Animal")
    assert opts.max_query_limit == 50
    assert opts.aggregate.allow_unknown_stats is False


def test_missing_file_yields_empty_config(tmp_path):
    config = UnimodelConfig.from_file(tmp_path / "nope.json")
    assert config.model_names == []
    assert config.options_for("Animal") == ModelOptions()


def test_invalid_file_contents_raise(tmp_path):
    path = tmp_path / "unimodel.json"
    path.write_text(json.dumps({"Animal": {"max_query_limit": 0}}), encoding="utf-8")
    with pytest.raises(ValidationError):
        UnimodelConfig.from_file(path)
