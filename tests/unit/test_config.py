"""Unit tests for configuration loading."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from rentpay.services import config
from rentpay.services.config import Settings, get_settings, reset_settings


@pytest.mark.unit
class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DAILY_LATE_FEE_RATE", raising=False)
        monkeypatch.delenv("CURRENCY", raising=False)

        settings = Settings(_env_file=None)

        assert settings.daily_late_fee_rate == Decimal("50")
        assert settings.currency == "INR"
        assert settings.razorpay_api_url == "https://api.razorpay.com"
        assert settings.landlord_linked_account_id is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DAILY_LATE_FEE_RATE", "75")
        monkeypatch.setenv("RAZORPAY_KEY_ID", "rzp_test_env")

        settings = Settings(_env_file=None)

        assert settings.daily_late_fee_rate == Decimal("75")
        assert settings.razorpay_key_id == "rzp_test_env"

    def test_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CURRENCY", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("CURRENCY=USD\nPLATFORM_FEE_PERCENT=2.5\n")

        settings = Settings(_env_file=str(env_file))

        assert settings.currency == "USD"
        assert settings.platform_fee_percent == Decimal("2.5")

    def test_negative_late_fee_rate_rejected(self, monkeypatch):
        monkeypatch.setenv("DAILY_LATE_FEE_RATE", "-1")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)


@pytest.mark.unit
class TestGetSettings:
    def teardown_method(self):
        reset_settings()

    def test_cached_until_reset(self, monkeypatch):
        reset_settings()
        first = get_settings()
        assert get_settings() is first

        reset_settings()
        assert config._settings_instance is None
        assert get_settings() is not first
