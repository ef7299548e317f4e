"""Unit tests for tax rules loading and validation."""

import copy
import pytest
from pydantic import ValidationError

from payslip.sdk.taxes import (
    TaxRules,
    TaxRulesNotFoundError,
    get_available_years,
    load_tax_rules,
)


@pytest.fixture
def rules_dict():
    return load_tax_rules(2025).model_dump()


class TestLoadTaxRules:
    """Shipped rules file."""

    def test_2025_available(self):
        assert 2025 in get_available_years()

    def test_2025_contents(self):
        rules = load_tax_rules(2025)
        assert rules.year == 2025
        assert rules.country == "LU"
        assert len(rules.income_tax_brackets) == 21
        assert rules.income_tax_brackets[0].rate == 0
        assert rules.income_tax_brackets[-1].max is None
        assert rules.income_tax_brackets[-1].rate == 0.42
        assert rules.solidarity_surcharge.high_rate_thresholds == {1: 150000, 2: 300000}
        assert rules.credits.single_parent_monthly == 292

    def test_cached(self):
        assert load_tax_rules(2025) is load_tax_rules(2025)

    def test_unknown_year(self):
        with pytest.raises(TaxRulesNotFoundError) as exc_info:
            load_tax_rules(1999)
        assert "2025" in str(exc_info.value)

    def test_rules_are_frozen(self):
        with pytest.raises(ValidationError):
            load_tax_rules(2025).year = 2030


class TestBracketValidation:
    """Malformed bracket tables are rejected."""

    def test_valid_roundtrip(self, rules_dict):
        assert TaxRules.model_validate(rules_dict).year == 2025

    def test_gap_between_brackets(self, rules_dict):
        data = copy.deepcopy(rules_dict)
        data["income_tax_brackets"][3]["min"] += 1
        with pytest.raises(ValidationError, match="bracket 4 min"):
            TaxRules.model_validate(data)

    def test_must_start_at_zero(self, rules_dict):
        data = copy.deepcopy(rules_dict)
        data["income_tax_brackets"][0]["min"] = 100
        with pytest.raises(ValidationError, match="must start at 0"):
            TaxRules.model_validate(data)

    def test_last_must_be_unbounded(self, rules_dict):
        data = copy.deepcopy(rules_dict)
        data["income_tax_brackets"][-1]["max"] = 500000
        with pytest.raises(ValidationError, match="unbounded"):
            TaxRules.model_validate(data)

    def test_rate_above_one(self, rules_dict):
        data = copy.deepcopy(rules_dict)
        data["income_tax_brackets"][5]["rate"] = 16
        with pytest.raises(ValidationError):
            TaxRules.model_validate(data)
