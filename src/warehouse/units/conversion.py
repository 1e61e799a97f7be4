"""Tier ↔ base-unit conversion for products packed in nested tiers.

A product is counted in up to three tiers, outermost first (e.g. carton →
box → piece). Tier 3 is always the indivisible base unit. ``rate1`` and
``rate2`` are the number of base units in one tier-1 and one tier-2 unit;
a rate of zero (or a missing rate) disables that tier.

The canonical stored value is always the base-unit integer; tier triples are
an input and display convenience.
"""

import os
from typing import NamedTuple

from protean.exceptions import ValidationError

DEFAULT_RATE1 = 144
DEFAULT_RATE2 = 12

DEFAULT_TIER_NAMES = ("Carton", "Box", "Piece")


class TierQuantities(NamedTuple):
    qty1: int
    qty2: int
    qty3: int


class ConversionRates(NamedTuple):
    """Bare conversion rates, usable wherever a ``Product`` is accepted."""

    rate1: int | None = None
    rate2: int | None = None


def default_rates() -> ConversionRates:
    """Rates applied to products registered without explicit rates.

    Override with ``WAREHOUSE_DEFAULT_RATE1`` / ``WAREHOUSE_DEFAULT_RATE2``.
    """
    return ConversionRates(
        rate1=int(os.environ.get("WAREHOUSE_DEFAULT_RATE1", DEFAULT_RATE1)),
        rate2=int(os.environ.get("WAREHOUSE_DEFAULT_RATE2", DEFAULT_RATE2)),
    )


def _active_rate(rate) -> int:
    if rate is None or rate <= 0:
        return 0
    return int(rate)


def check_quantity(field: str, value) -> int:
    """Return ``value`` if it is a non-negative int (``bool`` excluded), else raise."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError({field: [f"Quantity must be a whole number, got {value!r}"]})
    if value < 0:
        raise ValidationError({field: [f"Quantity cannot be negative, got {value}"]})
    return value


def to_base_units(product, qty1: int = 0, qty2: int = 0, qty3: int = 0) -> int:
    """Collapse a tier triple into base units: ``qty1*rate1 + qty2*rate2 + qty3``.

    Quantities in a disabled tier contribute nothing.
    """
    qty1 = check_quantity("qty1", qty1)
    qty2 = check_quantity("qty2", qty2)
    qty3 = check_quantity("qty3", qty3)
    return qty1 * _active_rate(product.rate1) + qty2 * _active_rate(product.rate2) + qty3


def from_base_units(product, base_qty: int) -> TierQuantities:
    """Greedy decomposition of a base-unit count into tiers.

    Fills tier 1 first, then tier 2, leaving the remainder in base units.
    The result is not unique in general, but always converts back to the
    same ``base_qty``.
    """
    remainder = check_quantity("base_qty", base_qty)
    qty1 = qty2 = 0

    rate1 = _active_rate(product.rate1)
    if rate1:
        qty1, remainder = divmod(remainder, rate1)

    rate2 = _active_rate(product.rate2)
    if rate2:
        qty2, remainder = divmod(remainder, rate2)

    return TierQuantities(qty1, qty2, remainder)


def _tier_names(product) -> tuple[str, str, str]:
    return tuple(
        getattr(product, attr, None) or default
        for attr, default in zip(("tier1_name", "tier2_name", "tier3_name"), DEFAULT_TIER_NAMES, strict=True)
    )


def format_quantity(product, base_qty: int) -> str:
    """Render a base-unit count as e.g. ``"2 Carton 3 Box 5 Piece"``.

    Zero tiers are skipped; a zero quantity renders as ``"0 <base unit>"``.
    """
    quantities = from_base_units(product, base_qty)
    names = _tier_names(product)
    parts = [f"{qty} {name}" for qty, name in zip(quantities, names, strict=True) if qty]
    return " ".join(parts) if parts else f"0 {names[2]}"


def conversion_summary(product) -> list[str]:
    """Describe the conversion ladder, one line per enabled tier."""
    name1, name2, name3 = _tier_names(product)
    lines = []
    if _active_rate(product.rate1):
        lines.append(f"1 {name1} = {product.rate1} {name3}")
    if _active_rate(product.rate2):
        lines.append(f"1 {name2} = {product.rate2} {name3}")
    return lines
