# Watchlistarr test scripts
from __future__ import annotations

import json
from pathlib import Path

import pytest

from wl_platform.config_base import (
    DEFAULT_CFG,
    ConfigError,
    config_path,
    interval_seconds,
    load_config,
    normalize_aliases,
    role_configured,
    validate_config,
)


def _usable() -> dict:
    cfg = load_config()
    cfg["plex"]["token"] = "tok"
    cfg["radarr"].update(base_url="http://radarr:7878", api_key="k")
    return cfg


def test_missing_file_yields_defaults(config_base: Path) -> None:
    cfg = load_config()
    assert cfg == DEFAULT_CFG
    assert cfg is not DEFAULT_CFG
    assert config_path() == config_base / "config.json"


def test_user_values_merge_over_defaults(config_base: Path) -> None:
    (config_base / "config.json").write_text(
        json.dumps({"radarr": {"baseUrl": "http://r:7878", "apiKey": "k", "tags": "plex, 4k"}, "interval": 60}),
        encoding="utf-8",
    )
    cfg = load_config()
    assert cfg["radarr"]["base_url"] == "http://r:7878"
    assert cfg["radarr"]["api_key"] == "k"
    assert cfg["radarr"]["tags"] == ["plex", "4k"]
    assert cfg["radarr"]["monitoring"] == "movieOnly"
    assert interval_seconds(cfg) == 60.0
    assert cfg["dispatch"]["max_attempts"] == 3


def test_canonical_key_wins_over_alias() -> None:
    out = normalize_aliases({"sonarr": {"apiKey": "old", "api_key": "new"}})
    assert out["sonarr"] == {"api_key": "new"}


def test_bad_json_is_a_config_error(config_base: Path) -> None:
    (config_base / "config.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config()


def test_non_object_top_level_is_a_config_error(config_base: Path) -> None:
    (config_base / "config.json").write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config()


def test_explicit_path_may_be_a_directory(tmp_path: Path) -> None:
    assert config_path(tmp_path) == tmp_path / "config.json"
    assert config_path(tmp_path / "other.json") == tmp_path / "other.json"


def test_role_configured() -> None:
    assert role_configured({"sonarr": {"base_url": "http://s", "api_key": "k"}}, "sonarr")
    assert not role_configured({"sonarr": {"base_url": "http://s", "api_key": " "}}, "sonarr")
    assert not role_configured({"sonarr": {"base_url": "http://s", "api_key": "k", "enabled": False}}, "sonarr")
    assert not role_configured({}, "radarr")


def test_validate_accepts_usable_config(config_base: Path) -> None:
    assert validate_config(_usable()) == []


def test_validate_defaults_need_token_and_a_service(config_base: Path) -> None:
    problems = validate_config(load_config())
    assert "plex.token is required" in problems
    assert any("sonarr or radarr" in p for p in problems)


def test_validate_reports_bad_values(config_base: Path) -> None:
    cfg = _usable()
    cfg["radarr"]["monitoring"] = "everything"
    cfg["radarr"]["minimum_availability"] = "soon"
    cfg["dispatch"]["max_attempts"] = 0
    cfg["interval"]["seconds"] = 0
    cfg["runtime"]["api"]["port"] = 70000
    problems = validate_config(cfg)
    assert len(problems) == 5
    assert any(p.startswith("radarr.monitoring") for p in problems)
    assert any(p.startswith("radarr.minimum_availability") for p in problems)
    assert "dispatch.max_attempts must be an integer >= 1" in problems
    assert "interval.seconds must be a number >= 1" in problems
    assert "runtime.api.port must be between 1 and 65535" in problems
