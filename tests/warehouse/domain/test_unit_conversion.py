"""Tests for tier ↔ base-unit conversion."""

import pytest
from protean.exceptions import ValidationError
from warehouse.units.conversion import (
    ConversionRates,
    conversion_summary,
    default_rates,
    format_quantity,
    from_base_units,
    to_base_units,
)

CARTON_BOX = ConversionRates(rate1=144, rate2=12)


class TestToBaseUnits:
    def test_documented_example(self):
        assert to_base_units(CARTON_BOX, 2, 3, 5) == 329

    def test_base_units_only(self):
        assert to_base_units(CARTON_BOX, 0, 0, 17) == 17

    def test_all_zero(self):
        assert to_base_units(CARTON_BOX) == 0

    def test_negative_quantity_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            to_base_units(CARTON_BOX, -1, 0, 0)
        assert "qty1" in exc.value.messages

    def test_non_integer_quantity_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            to_base_units(CARTON_BOX, 0, 1.5, 0)
        assert "qty2" in exc.value.messages

    def test_boolean_quantity_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            to_base_units(CARTON_BOX, 0, 0, True)
        assert "qty3" in exc.value.messages

    def test_disabled_tier_contributes_nothing(self):
        assert to_base_units(ConversionRates(rate1=0, rate2=12), 5, 1, 2) == 14

    def test_missing_rates_disable_both_tiers(self):
        assert to_base_units(ConversionRates(), 3, 3, 3) == 3


class TestFromBaseUnits:
    def test_greedy_decomposition(self):
        assert tuple(from_base_units(CARTON_BOX, 329)) == (2, 3, 5)

    def test_exact_multiple(self):
        assert tuple(from_base_units(CARTON_BOX, 288)) == (2, 0, 0)

    def test_zero(self):
        assert tuple(from_base_units(CARTON_BOX, 0)) == (0, 0, 0)

    def test_disabled_tier1_skips_to_tier2(self):
        assert tuple(from_base_units(ConversionRates(rate1=0, rate2=12), 30)) == (0, 2, 6)

    def test_no_rates_leaves_everything_in_base_units(self):
        assert tuple(from_base_units(ConversionRates(rate1=None, rate2=0), 30)) == (0, 0, 30)

    def test_negative_base_quantity_is_rejected(self):
        with pytest.raises(ValidationError):
            from_base_units(CARTON_BOX, -5)

    @pytest.mark.parametrize(
        "rates,base",
        [
            (ConversionRates(144, 12), 1000),
            (ConversionRates(24, 6), 77),
            (ConversionRates(10, 0), 99),
            (ConversionRates(0, 0), 5),
            (ConversionRates(7, 3), 50),
        ],
    )
    def test_reconverting_reproduces_the_base_total(self, rates, base):
        assert to_base_units(rates, *from_base_units(rates, base)) == base


class TestDisplayHelpers:
    def test_format_quantity_skips_empty_tiers(self):
        assert format_quantity(CARTON_BOX, 293) == "2 Carton 5 Piece"

    def test_format_zero(self):
        assert format_quantity(CARTON_BOX, 0) == "0 Piece"

    def test_conversion_summary(self):
        assert conversion_summary(CARTON_BOX) == ["1 Carton = 144 Piece", "1 Box = 12 Piece"]

    def test_conversion_summary_skips_disabled_tiers(self):
        assert conversion_summary(ConversionRates(rate1=0, rate2=6)) == ["1 Box = 6 Piece"]


class TestDefaultRates:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("WAREHOUSE_DEFAULT_RATE1", raising=False)
        monkeypatch.delenv("WAREHOUSE_DEFAULT_RATE2", raising=False)
        assert default_rates() == ConversionRates(144, 12)

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("WAREHOUSE_DEFAULT_RATE1", "24")
        monkeypatch.setenv("WAREHOUSE_DEFAULT_RATE2", "6")
        assert default_rates() == ConversionRates(24, 6)
