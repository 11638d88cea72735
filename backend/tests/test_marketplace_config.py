"""
Tests for commission calculation and marketplace configuration updates
"""
import pytest

from exceptions import ValidationError
from models import AuditLog
from services.audit_logger import AuditLogger
from services.marketplace_config_service import MarketplaceConfigService, commission_rate


@pytest.fixture
def marketplace(db_session):
    return MarketplaceConfigService(db_session, AuditLogger(db_session))


def test_tiered_rate_picks_highest_reached_threshold(marketplace):
    config = marketplace.get_config()

    assert commission_rate(config, "VENUE", 20000) == 0.02
    assert commission_rate(config, "VENUE", 6000) == 0.025
    assert commission_rate(config, "VENUE", 500) == 0.03
    assert commission_rate(config, "CATERING", 2500) == 0.035


def test_fee_is_clamped_to_category_bounds(marketplace):
    small = marketplace.calculate_commission("venue", 500)
    assert small["fee"] == 50
    assert small["vendor_payout"] == 450

    large = marketplace.calculate_commission("VENUE", 100000)
    assert large["rate"] == 0.02
    assert large["fee"] == 1000


def test_unknown_category_uses_default_rule(marketplace):
    result = marketplace.calculate_commission("balloons", 1000)

    assert result["category"] == "BALLOONS"
    assert result["rate"] == 0.05
    assert result["fee"] == 50


def test_negative_amount_is_rejected(marketplace):
    with pytest.raises(ValidationError):
        marketplace.calculate_commission("VENUE", -1)


def test_update_is_stored_and_audited(db_session, marketplace):
    updated = marketplace.update_config({"platform_fee_rate": 0.07, "escrow_enabled": True}, "admin-1")

    assert updated["platform_fee_rate"] == 0.07
    assert marketplace.get_config()["escrow_enabled"] is True
    log = db_session.query(AuditLog).filter_by(action="MARKETPLACE_CONFIG_UPDATED").one()
    assert log.user_id == "admin-1"


@pytest.mark.parametrize("updates", [
    {"platform_fee_rate": 1.5},
    {"payout_delay_days": -1},
    {"default_currency": "JPY"},
])
def test_invalid_update_is_rejected(marketplace, updates):
    with pytest.raises(ValidationError):
        marketplace.update_config(updates)
    assert marketplace.get_config()["platform_fee_rate"] == 0.05


def test_verification_requirements_fall_back_to_default(marketplace):
    assert marketplace.get_verification_requirements("photography")["minimum_experience"] == 2
    assert marketplace.get_verification_requirements("unknown") == marketplace.get_config()["verification_requirements"]["DEFAULT"]


def test_validate_reports_missing_stripe_keys_as_warnings(monkeypatch, marketplace):
    for name in ("STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET", "STRIPE_CONNECT_CLIENT_ID", "PAYPAL_CLIENT_ID"):
        monkeypatch.delenv(name, raising=False)

    result = marketplace.validate_config()

    assert result["valid"] is True
    assert len(result["warnings"]) == 3


def test_validate_requires_paypal_secret_with_client_id(monkeypatch, marketplace):
    monkeypatch.setenv("PAYPAL_CLIENT_ID", "client")
    monkeypatch.delenv("PAYPAL_CLIENT_SECRET", raising=False)

    result = marketplace.validate_config()

    assert result["valid"] is False
    assert any("PAYPAL_CLIENT_SECRET" in e for e in result["errors"])
