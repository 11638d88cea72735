"""
Marketplace Configuration Service

Platform fee, commission and vendor verification settings. The base
configuration comes from the environment (AppConfig.marketplace); the
stored 'default' row overrides it key by key.
"""

import os
from dataclasses import asdict
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
import logging

from config.app_config import app_config
from exceptions import ValidationError
from models import MarketplaceConfigRecord
from services.interfaces import IAuditLogger, IMarketplaceConfigService
from utils.transaction import transaction

logger = logging.getLogger(__name__)

CONFIG_ROW_ID = "default"


def _requirement(business_license, insurance_certificate, tax_documents, identity_verification,
                 portfolio_required, minimum_experience=None, background_check=None) -> Dict[str, Any]:
    return {
        "business_license": business_license,
        "insurance_certificate": insurance_certificate,
        "tax_documents": tax_documents,
        "identity_verification": identity_verification,
        "portfolio_required": portfolio_required,
        "minimum_experience": minimum_experience,
        "background_check": background_check,
    }


def _rule(base_rate, minimum_fee, maximum_fee, tiers=()) -> Dict[str, Any]:
    return {
        "base_rate": base_rate,
        "tiered_rates": [{"threshold": threshold, "rate": rate} for threshold, rate in tiers],
        "minimum_fee": minimum_fee,
        "maximum_fee": maximum_fee,
    }


def default_verification_requirements() -> Dict[str, Dict[str, Any]]:
    return {
        "DEFAULT": _requirement(True, False, True, True, True),
        "VENUE": _requirement(True, True, True, True, True, background_check=True),
        "CATERING": _requirement(True, True, True, True, True, background_check=True),
        "PHOTOGRAPHY": _requirement(False, True, True, True, True, minimum_experience=2),
        "VIDEOGRAPHY": _requirement(False, True, True, True, True, minimum_experience=2),
        "ENTERTAINMENT": _requirement(False, True, True, True, True, background_check=True),
        "DECORATION": _requirement(True, False, True, True, True),
        "AUDIO_VISUAL": _requirement(True, True, True, True, True),
        "TRANSPORTATION": _requirement(True, True, True, True, False, background_check=True),
        "SECURITY": _requirement(True, True, True, True, False, background_check=True),
    }


def default_commission_structure() -> Dict[str, Dict[str, Any]]:
    return {
        "DEFAULT": _rule(0.05, 5, 500),
        "VENUE": _rule(0.03, 50, 1000, tiers=[(10000, 0.02), (5000, 0.025), (1000, 0.03)]),
        "CATERING": _rule(0.04, 25, 750, tiers=[(5000, 0.03), (2000, 0.035)]),
        "PHOTOGRAPHY": _rule(0.06, 15, 300),
        "VIDEOGRAPHY": _rule(0.06, 20, 400),
        "ENTERTAINMENT": _rule(0.07, 25, 500),
        "DECORATION": _rule(0.05, 10, 200),
        "AUDIO_VISUAL": _rule(0.04, 20, 300),
        "TRANSPORTATION": _rule(0.08, 10, 150),
        "SECURITY": _rule(0.06, 15, 200),
        "CLEANING": _rule(0.07, 8, 100),
        "EQUIPMENT_RENTAL": _rule(0.05, 10, 250),
        "PRINTING": _rule(0.08, 5, 100),
        "MARKETING": _rule(0.10, 25, 500),
    }


def commission_rate(config: Dict[str, Any], category: str, amount: float) -> float:
    """
    Rate for a transaction: the first tier (highest threshold first) the
    amount reaches, else the category's base rate. Unknown categories use
    DEFAULT; without any rule the platform fee rate applies.
    """
    structure = config.get("commission_structure") or {}
    rule = structure.get(category) or structure.get("DEFAULT")
    if not rule:
        return config["platform_fee_rate"]

    for tier in sorted(rule.get("tiered_rates") or [], key=lambda t: t["threshold"], reverse=True):
        if amount >= tier["threshold"]:
            return tier["rate"]
    return rule["base_rate"]


def platform_fee(config: Dict[str, Any], category: str, amount: float) -> Dict[str, Any]:
    """
    Fee and vendor payout for a transaction, with the fee clamped to the
    category's minimum and maximum when those are set.
    """
    rate = commission_rate(config, category, amount)
    fee = amount * rate

    structure = config.get("commission_structure") or {}
    rule = structure.get(category) or structure.get("DEFAULT")
    if rule:
        if rule.get("minimum_fee") and fee < rule["minimum_fee"]:
            fee = rule["minimum_fee"]
        if rule.get("maximum_fee") and fee > rule["maximum_fee"]:
            fee = rule["maximum_fee"]

    fee = round(fee, 2)
    return {
        "category": category,
        "amount": amount,
        "rate": rate,
        "fee": fee,
        "vendor_payout": round(amount - fee, 2),
    }


def value_errors(config: Dict[str, Any]) -> list:
    errors = []
    if not 0 <= config["platform_fee_rate"] <= 1:
        errors.append("Platform fee rate must be between 0 and 1")
    if config["payout_delay_days"] < 0:
        errors.append("Payout delay days must be non-negative")
    if config["minimum_payout_amount"] < 0:
        errors.append("Minimum payout amount must be non-negative")
    if config["default_currency"] not in config["supported_currencies"]:
        errors.append("Default currency must be one of the supported currencies")
    return errors


class MarketplaceConfigService(IMarketplaceConfigService):
    """Service for the marketplace configuration."""

    def __init__(self, db: Session, audit: Optional[IAuditLogger] = None):
        self.db = db
        self.audit = audit

    def _base_config(self) -> Dict[str, Any]:
        config = asdict(app_config.marketplace)
        config["verification_requirements"] = default_verification_requirements()
        config["commission_structure"] = default_commission_structure()
        return config

    def _stored(self) -> Optional[MarketplaceConfigRecord]:
        return self.db.query(MarketplaceConfigRecord).filter(
            MarketplaceConfigRecord.active.is_(True)
        ).first()

    def get_config(self) -> Dict[str, Any]:
        """
        Effective configuration: environment defaults overlaid with the
        stored row (top-level keys replace their defaults).
        """
        config = self._base_config()
        record = self._stored()
        if record and record.config:
            config.update(record.config)
        return config

    def update_config(self, updates: Dict[str, Any], user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Merge updates into the effective configuration and store the result.

        Raises:
            ValidationError: If the merged configuration has invalid values
        """
        new_config = self.get_config()
        new_config.update({k: v for k, v in updates.items() if v is not None})

        errors = value_errors(new_config)
        if errors:
            raise ValidationError("; ".join(errors), {"errors": errors})

        with transaction(self.db, "Update marketplace config"):
            record = self.db.query(MarketplaceConfigRecord).filter(
                MarketplaceConfigRecord.id == CONFIG_ROW_ID
            ).first()
            if record is None:
                record = MarketplaceConfigRecord(id=CONFIG_ROW_ID, active=True)
                self.db.add(record)
            record.config = new_config
            record.active = True
            self.db.flush()
            if self.audit is not None:
                self.audit.log("MARKETPLACE_CONFIG_UPDATED", "marketplace_config", user_id=user_id,
                               resource_id=CONFIG_ROW_ID, details={"keys": sorted(updates)})

        logger.info(f"Marketplace configuration updated ({', '.join(sorted(updates))})")
        return new_config

    def calculate_commission(self, category: str, amount: float) -> Dict[str, Any]:
        if amount < 0:
            raise ValidationError("Amount must be non-negative", {"amount": amount})
        return platform_fee(self.get_config(), category.upper(), amount)

    def get_verification_requirements(self, category: str) -> Dict[str, Any]:
        requirements = self.get_config().get("verification_requirements") or {}
        return requirements.get(category.upper()) or requirements["DEFAULT"]

    def validate_config(self) -> Dict[str, Any]:
        """
        Check the configuration values and the payment provider environment.

        Value problems are errors; missing payment provider keys are only
        warnings since payment processing runs outside this service.
        """
        errors = value_errors(self.get_config())
        warnings = []
        if not os.environ.get("STRIPE_SECRET_KEY"):
            warnings.append("STRIPE_SECRET_KEY is not configured")
        if not os.environ.get("STRIPE_WEBHOOK_SECRET"):
            warnings.append("STRIPE_WEBHOOK_SECRET is not configured - webhook verification will be disabled")
        if not os.environ.get("STRIPE_CONNECT_CLIENT_ID"):
            warnings.append("STRIPE_CONNECT_CLIENT_ID is not configured - vendor payouts will be limited")
        if os.environ.get("PAYPAL_CLIENT_ID") and not os.environ.get("PAYPAL_CLIENT_SECRET"):
            errors.append("PAYPAL_CLIENT_SECRET is required when PAYPAL_CLIENT_ID is set")

        return {"valid": not errors, "errors": errors, "warnings": warnings}
