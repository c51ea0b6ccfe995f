"""
Unit Tests for settings snapshots and default wheel configuration
"""

import json

import pytest
from decimal import Decimal

from ledger.config import AppConfigSource
from ledger.errors import ConfigurationError
from ledger.wheel_config import DEFAULT_WHEEL_CONFIGS, default_app_settings, probability_report


class TestAppConfigSource:
    def test_defaults_without_file(self):
        settings = AppConfigSource().snapshot()

        assert settings.house_edge == 0.6
        assert set(settings.wheel_configs) == {"little", "big", "more-big"}
        assert settings.min_withdrawal_amount == Decimal("500")

    def test_file_overrides(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"min_withdrawal_amount": "250", "max_spins_in_bundle": 3}))

        settings = AppConfigSource(path=str(path)).snapshot()

        assert settings.min_withdrawal_amount == Decimal("250")
        assert settings.max_spins_in_bundle == 3
        assert settings.referral_bonus_for_referrer == Decimal("10")

    def test_snapshot_survives_reload(self, tmp_path):
        """Snapshots handed out earlier keep their values after a reload."""
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"max_spins_in_bundle": 3}))
        source = AppConfigSource(path=str(path))
        before = source.snapshot()

        path.write_text(json.dumps({"max_spins_in_bundle": 7}))
        source.reload()

        assert before.max_spins_in_bundle == 3
        assert source.snapshot().max_spins_in_bundle == 7

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"house_edge": 2}))

        with pytest.raises(ConfigurationError):
            AppConfigSource(path=str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            AppConfigSource(path=str(tmp_path / "nope.json"))


class TestDefaultWheels:
    def test_every_tier_has_a_losing_segment(self):
        for config in DEFAULT_WHEEL_CONFIGS.values():
            assert any(s.multiplier == 0 for s in config.segments)

    def test_probability_report_flags_drift(self, settings):
        skewed = settings.wheel_configs["big"].model_copy(update={
            "segments": [s.model_copy(update={"probability": 0.4}) for s in settings.wheel_configs["big"].segments],
        })
        drifted = settings.model_copy(update={"wheel_configs": {"big": skewed}})

        report = probability_report(drifted)

        assert report["big"] == {"total": 0.8, "balanced": False}

    def test_default_report_is_balanced(self):
        report = probability_report(default_app_settings())
        assert all(entry["balanced"] for entry in report.values())
