"""
Unit tests for the scan settings module.
"""

import json

import pytest

from modules.errors import SettingsError
from modules.settings import CommandSet, ScanSettings, load_settings, parse_list, save_settings


# ─── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def settings():
    """Valid settings for a short 5 GHz sweep."""
    return ScanSettings(
        password="secret",
        start_frequency=5180,
        end_frequency=5200,
        frequency_step=10,
        stabilization_minutes=0,
    )


# ─── Sweep Enumeration ───────────────────────────────────────────────────────


class TestFrequencies:
    """Tests for ScanSettings.frequencies."""

    def test_inclusive_range(self, settings):
        """Test that the end frequency is included when the step lands on it."""
        assert settings.frequencies() == [5180, 5190, 5200]

    def test_step_not_landing_on_end(self, settings):
        """Test that the last frequency never exceeds the end."""
        freqs = settings.with_overrides(frequency_step=15).frequencies()
        assert freqs == [5180, 5195]

    @pytest.mark.parametrize("start,end,step", [
        (2400, 2500, 5),
        (5170, 5835, 20),
        (1000, 1001, 1),
    ])
    def test_bounded_and_increasing(self, settings, start, end, step):
        """Test that the list is non-empty, strictly increasing and in range."""
        freqs = settings.with_overrides(
            start_frequency=start, end_frequency=end, frequency_step=step
        ).frequencies()

        assert freqs
        assert freqs[0] == start
        assert all(start <= f <= end for f in freqs)
        assert all(b > a for a, b in zip(freqs, freqs[1:]))

    def test_zero_step(self, settings):
        """Test that a zero step yields nothing instead of looping."""
        assert settings.with_overrides(frequency_step=0).frequencies() == []


class TestCombinations:
    """Tests for ScanSettings.combinations."""

    def test_order(self, settings):
        """Test frequency-major, then protocol, then channel width."""
        combos = settings.with_overrides(
            end_frequency=5190,
            wireless_protocols=("nv2", "nstreme"),
            channel_widths=("20mhz", "20/40mhz-Ce"),
        ).combinations()

        assert len(combos) == 8
        assert combos[0] == (5180, "nv2", "20mhz")
        assert combos[1] == (5180, "nv2", "20/40mhz-Ce")
        assert combos[2] == (5180, "nstreme", "20mhz")
        assert combos[4] == (5190, "nv2", "20mhz")

    def test_empty_candidate_lists(self, settings):
        """Test that empty lists contribute a single None."""
        combos = settings.combinations()
        assert combos == [(5180, None, None), (5190, None, None), (5200, None, None)]


# ─── Validation ──────────────────────────────────────────────────────────────


class TestValidate:
    """Tests for ScanSettings.validate."""

    def test_valid(self, settings):
        """Test that consistent settings have no errors."""
        assert settings.validate() == []
        assert settings.ensure_valid() is settings

    def test_defaults_need_password(self):
        """Test that factory defaults are only missing the password."""
        errors = ScanSettings.defaults().validate()
        assert errors == ["Password must not be empty."]

    def test_start_not_below_end(self, settings):
        """Test start >= end is rejected."""
        errors = settings.with_overrides(start_frequency=5200, end_frequency=5180).validate()
        assert "Start frequency must be lower than end frequency." in errors

    def test_step(self, settings):
        """Test zero and oversized steps."""
        assert "Frequency step must be greater than zero." in (
            settings.with_overrides(frequency_step=0).validate()
        )
        assert "Frequency step must not exceed the frequency range." in (
            settings.with_overrides(frequency_step=50).validate()
        )

    def test_frequency_bounds(self, settings):
        """Test frequencies outside the supported band."""
        errors = settings.with_overrides(start_frequency=900, end_frequency=7000).validate()
        assert any(e.startswith("Start frequency must be between") for e in errors)
        assert any(e.startswith("End frequency must be between") for e in errors)

    def test_addresses(self, settings):
        """Test router and ping target IP validation."""
        errors = settings.with_overrides(router_host="router.local", ping_target="8.8.8").validate()
        assert "Router IP address is not valid." in errors
        assert "Ping target IP address is not valid." in errors

    def test_ping_target_optional(self, settings):
        """Test that ping can be disabled."""
        assert settings.with_overrides(ping_target=None).validate() == []

    def test_stabilization_range(self, settings):
        """Test the stabilization time bounds."""
        assert settings.with_overrides(stabilization_minutes=-1).validate()
        assert settings.with_overrides(stabilization_minutes=61).validate()
        assert settings.with_overrides(stabilization_minutes=0.5).validate() == []

    def test_ensure_valid_raises(self, settings):
        """Test that ensure_valid raises SettingsError with every problem."""
        bad = settings.with_overrides(password="", interface_name=" ")
        with pytest.raises(SettingsError) as exc_info:
            bad.ensure_valid()

        assert "Password must not be empty." in exc_info.value.errors
        assert "Interface name must not be empty." in exc_info.value.errors
        assert exc_info.value.report.kind == "settings"


# ─── Dictionaries and Presets ────────────────────────────────────────────────


class TestFromDict:
    """Tests for building settings from plain dictionaries."""

    def test_list_strings(self):
        """Test comma and newline separated candidate lists."""
        settings = ScanSettings.from_dict({
            "wireless_protocols": "nv2, nstreme\n802.11",
            "channel_widths": ["20mhz", " ", "20/40mhz-Ce"],
        })
        assert settings.wireless_protocols == ("nv2", "nstreme", "802.11")
        assert settings.channel_widths == ("20mhz", "20/40mhz-Ce")

    def test_failure_keywords(self):
        """Test that failure keywords default from config and can be replaced."""
        assert "invalid" in ScanSettings().failure_keywords
        settings = ScanSettings.from_dict({"failure_keywords": "busy, denied"})
        assert settings.failure_keywords == ("busy", "denied")
        assert settings.to_dict()["failure_keywords"] == ["busy", "denied"]

    def test_numeric_strings(self):
        """Test that numeric fields accept strings."""
        settings = ScanSettings.from_dict({
            "start_frequency": "5180",
            "stabilization_minutes": "1.5",
        })
        assert settings.start_frequency == 5180
        assert settings.stabilization_minutes == 1.5

    def test_bad_integer(self):
        """Test that a non-numeric frequency raises SettingsError."""
        with pytest.raises(SettingsError):
            ScanSettings.from_dict({"start_frequency": "abc"})

    def test_unknown_keys_ignored(self):
        """Test that unknown keys do not break construction."""
        settings = ScanSettings.from_dict({"colour": "blue", "username": "tech"})
        assert settings.username == "tech"

    def test_custom_commands(self):
        """Test that command overrides merge with defaults."""
        settings = ScanSettings.from_dict({
            "commands": {"monitor_interface": "/interface wireless monitor {interface} once"}
        })
        assert settings.commands.monitor_interface == "/interface wireless monitor {interface} once"
        assert settings.commands.set_frequency == CommandSet().set_frequency

    def test_to_dict_masks_password(self, settings):
        """Test that the password can be left out of the dictionary."""
        assert settings.to_dict()["password"] == "secret"
        assert settings.to_dict(include_password=False)["password"] == "******"

    def test_parse_list_none(self):
        """Test that None parses to an empty tuple."""
        assert parse_list(None) == ()


class TestPresets:
    """Tests for JSON preset files."""

    def test_save_and_load(self, settings, tmp_path):
        """Test that a saved preset loads back to equal settings."""
        path = tmp_path / "preset.json"
        original = settings.with_overrides(wireless_protocols=("nv2",))

        assert save_settings(original, path)
        assert json.loads(path.read_text())["wireless_protocols"] == ["nv2"]
        assert load_settings(path) == original

    def test_missing_file(self, tmp_path):
        """Test that a missing preset falls back to defaults."""
        assert load_settings(tmp_path / "nope.json") == ScanSettings.defaults()

    def test_corrupt_file(self, tmp_path):
        """Test that an unreadable preset falls back to defaults."""
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        assert load_settings(path) == ScanSettings.defaults()
