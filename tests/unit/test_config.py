"""
Unit tests for curleacoustics/config.py

Tests settings parsing, defaults and validation.
"""

import json

import pytest

from curleacoustics.config import (
    DEFAULT_C0,
    DEFAULT_FFT_FREQ,
    DEFAULT_P_REF,
    CurleSettings,
    ObserverSettings,
    load_settings,
)
from curleacoustics.exceptions import ConfigurationError


class TestCurleSettings:
    """Test CurleSettings.from_dict and validation."""

    def test_from_dict(self, settings_dict):
        settings = CurleSettings.from_dict(settings_dict)
        assert settings.patch_names == ("front", "back")
        assert settings.probe_frequency == 1
        assert settings.c0 == 340.0
        assert [obs.name for obs in settings.observers] == ["mic1", "mic2"]
        assert settings.observers[0].position == (10.5, 2.0, 0.0)
        assert settings.observers[1].fft_freq == 16

    def test_defaults(self):
        settings = CurleSettings.from_dict({"patchNames": ["wall"], "timeStart": 0.0, "timeEnd": 1.0})
        assert settings.c0 == DEFAULT_C0
        assert settings.probe_frequency == 1
        assert settings.d_ref < 0.0
        assert not settings.distance_normalised
        assert not settings.uses_density_field
        assert settings.log is False
        assert settings.observers == ()

    def test_observer_defaults(self):
        obs = ObserverSettings.from_dict("mic", {"position": [1, 2, 3]})
        assert obs.p_ref == DEFAULT_P_REF
        assert obs.fft_freq == DEFAULT_FFT_FREQ
        assert obs.position == (1.0, 2.0, 3.0)

    def test_round_trip(self, settings_dict):
        settings = CurleSettings.from_dict(settings_dict)
        assert CurleSettings.from_dict(settings.to_dict()) == settings

    def test_single_patch_name_string(self):
        settings = CurleSettings.from_dict({"patchNames": "wall", "timeStart": 0.0, "timeEnd": 1.0})
        assert settings.patch_names == ("wall",)

    def test_negative_rho_ref_uses_field(self, settings_dict):
        settings_dict["rhoRef"] = -1.0
        assert CurleSettings.from_dict(settings_dict).uses_density_field

    def test_settings_are_immutable(self, settings_dict):
        settings = CurleSettings.from_dict(settings_dict)
        with pytest.raises(AttributeError):
            settings.c0 = 1.0

    @pytest.mark.parametrize("key", ["patchNames", "timeStart", "timeEnd"])
    def test_missing_required_key(self, settings_dict, key):
        del settings_dict[key]
        with pytest.raises(ConfigurationError, match=key):
            CurleSettings.from_dict(settings_dict)

    @pytest.mark.parametrize(
        "key, value",
        [
            ("probeFrequency", 0),
            ("probeFrequency", 2.5),
            ("c0", 0.0),
            ("c0", -340.0),
            ("timeEnd", -1.0),
            ("patchNames", []),
            ("rhoRef", 0.0),
            ("observers", ["mic"]),
        ],
    )
    def test_invalid_values(self, settings_dict, key, value):
        settings_dict[key] = value
        with pytest.raises(ConfigurationError):
            CurleSettings.from_dict(settings_dict)

    @pytest.mark.parametrize(
        "observer",
        [
            {"pRef": 1e-5, "fftFreq": 8},
            {"position": [1.0, 2.0], "pRef": 1e-5},
            {"position": "abc"},
            {"position": [1.0, 2.0, 3.0], "pRef": 0.0},
            {"position": [1.0, 2.0, 3.0], "fftFreq": 0},
            {"position": [1.0, 2.0, 3.0], "fftFreq": 1},
        ],
    )
    def test_invalid_observer(self, settings_dict, observer):
        settings_dict["observers"]["mic3"] = observer
        with pytest.raises(ConfigurationError, match="mic3"):
            CurleSettings.from_dict(settings_dict)


class TestLoadSettings:
    """Test load_settings from JSON files."""

    def test_load(self, tmp_path, settings_dict):
        path = tmp_path / "curle.json"
        path.write_text(json.dumps(settings_dict), encoding="utf-8")
        settings = load_settings(str(path))
        assert settings == CurleSettings.from_dict(settings_dict)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{ not json", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_settings(str(path))
