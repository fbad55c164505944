"""Tests for InvoicingConfig."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from core.config import InvoicingConfig
from core.models import NumberingLine


class TestDefaults:

    def test_default_prefixes(self):
        config = InvoicingConfig()
        assert config.default_prefixes == {
            NumberingLine.TAXABLE: "INV",
            NumberingLine.EXEMPT: "EINV",
            NumberingLine.WRITE_OFF: "WO",
        }

    def test_permissive_policy_defaults(self):
        config = InvoicingConfig()
        assert config.require_full_payment_for_manual_paid is False
        assert config.accept_overpayment is True
        assert config.allow_write_off_resequence is True

    def test_invoice_defaults(self):
        config = InvoicingConfig()
        assert config.default_tax_rate == Decimal("0")
        assert config.default_payment_terms_days == 30
        assert config.default_currency == "USD"


class TestValidation:

    def test_tax_rate_above_100_rejected(self):
        with pytest.raises(ValidationError):
            InvoicingConfig(default_tax_rate=Decimal("101"))

    def test_negative_terms_rejected(self):
        with pytest.raises(ValidationError):
            InvoicingConfig(default_payment_terms_days=-1)

    def test_currency_must_be_three_letters(self):
        with pytest.raises(ValidationError):
            InvoicingConfig(default_currency="DOLLAR")

    def test_prefixes_accept_line_names(self):
        config = InvoicingConfig(default_prefixes={"taxable": "TX", "exempt": "EX", "write_off": "W"})
        assert config.default_prefixes[NumberingLine.TAXABLE] == "TX"
