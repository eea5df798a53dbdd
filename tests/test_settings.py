"""Tests for estimation settings and their YAML form."""

from __future__ import annotations

import pytest

from bridgekit import BridgeSettings, SettingsError, load_settings, save_settings
from bridgekit.io import resolve_settings, settings_from_yaml, settings_to_yaml


def test_defaults():
    settings = BridgeSettings()
    assert settings.method == "normal"
    assert settings.tol == 1e-10
    assert settings.maxiter == 1000
    assert settings.split is True
    assert settings.n_proposal is None


@pytest.mark.parametrize("name", ["warp3", "Warp-III", "warp_iii", "WARP3"])
def test_method_aliases(name):
    assert BridgeSettings(method=name).method == "warp3"


@pytest.mark.parametrize(
    "changes",
    [
        {"method": "importance"},
        {"tol": 0.0},
        {"maxiter": 0},
        {"n_proposal": 0},
        {"ridge": -1.0},
        {"time_budget": -5.0},
        {"maxiter": "many"},
        {"maxiter": 2.5},
        {"tol": "abc"},
        {"ridge": None},
        {"seed": "lucky"},
        {"time_budget": "soon"},
        {"split": "false"},
        {"retry_unconverged": 1},
    ],
)
def test_invalid_values(changes):
    with pytest.raises(SettingsError):
        BridgeSettings(**changes)


def test_replace_rejects_unknown_keys():
    with pytest.raises(SettingsError, match="Unknown settings: tolerance"):
        BridgeSettings().replace(tolerance=1e-6)


def test_settings_error_is_value_error():
    with pytest.raises(ValueError):
        BridgeSettings(method="nope")


def test_yaml_round_trip(tmp_path):
    settings = BridgeSettings(method="warp3", tol=1e-8, seed=2024, n_proposal=500, split=False)
    path = tmp_path / "bridge.yaml"
    save_settings(settings, path)
    assert load_settings(path) == settings
    assert settings_from_yaml(settings_to_yaml(settings)) == settings


def test_yaml_nested_section():
    text = """
bridge_sampling:
  method: warp3
  maxiter: 200
"""
    settings = settings_from_yaml(text)
    assert settings.method == "warp3"
    assert settings.maxiter == 200


def test_empty_yaml_gives_defaults():
    assert settings_from_yaml("") == BridgeSettings()


def test_invalid_yaml():
    with pytest.raises(SettingsError, match="Invalid YAML"):
        settings_from_yaml("method: [unclosed")


def test_missing_file(tmp_path):
    with pytest.raises(SettingsError, match="not found"):
        load_settings(tmp_path / "missing.yaml")


class TestResolve:
    def test_none_overrides_ignored(self):
        settings = resolve_settings(BridgeSettings(seed=3), seed=None, tol=None)
        assert settings.seed == 3
        assert settings.tol == 1e-10

    def test_overrides_applied_to_dict(self):
        settings = resolve_settings({"method": "warp3"}, maxiter=10)
        assert (settings.method, settings.maxiter) == ("warp3", 10)

    def test_path_input(self, tmp_path):
        path = tmp_path / "s.yaml"
        path.write_text("tol: 1.0e-6\n")
        assert resolve_settings(str(path)).tol == 1e-6

    def test_unsupported_type(self):
        with pytest.raises(SettingsError, match="Unsupported settings type"):
            resolve_settings(42)


def test_non_numeric_yaml_value(tmp_path):
    path = tmp_path / "bridge.yaml"
    path.write_text("maxiter: many\n")
    with pytest.raises(SettingsError, match="maxiter must be an integer"):
        load_settings(path)


def test_yaml_booleans_accepted():
    settings = settings_from_yaml("split: false\nretry_unconverged: no\n")
    assert settings.split is False
    assert settings.retry_unconverged is False


def test_integral_floats_accepted():
    settings = BridgeSettings(maxiter=200.0, n_proposal=1e3)
    assert settings.maxiter == 200
    assert settings.n_proposal == 1000
