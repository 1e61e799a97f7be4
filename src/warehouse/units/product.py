"""Product aggregate: a SKU with its packaging tiers and conversion rates.

Tier names run outermost to innermost; tier 3 is the base unit. ``rate1`` and
``rate2`` count base units per tier-1 and tier-2 unit. A rate of 0 disables
its tier. When both tiers are enabled, ``rate1 >= rate2 >= 1``.
"""

from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String

from warehouse.domain import warehouse
from warehouse.units.conversion import DEFAULT_TIER_NAMES, default_rates
from warehouse.units.events import ConversionRatesUpdated, ProductRegistered


@warehouse.aggregate
class Product:
    sku = Identifier(identifier=True, required=True)
    product_type = String(max_length=50)
    tier1_name = String(max_length=50, default=DEFAULT_TIER_NAMES[0])
    tier2_name = String(max_length=50, default=DEFAULT_TIER_NAMES[1])
    tier3_name = String(max_length=50, default=DEFAULT_TIER_NAMES[2])
    rate1 = Integer(min_value=0, default=0)
    rate2 = Integer(min_value=0, default=0)
    is_default_rates = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def tier_rates_must_be_nested(self):
        if self.rate1 and self.rate2 and self.rate1 < self.rate2:
            raise ValidationError({"rate1": ["Tier 1 rate must be greater than or equal to the tier 2 rate"]})

    @classmethod
    def register(
        cls,
        sku: str,
        product_type: str | None = None,
        rate1: int | None = None,
        rate2: int | None = None,
        tier1_name: str | None = None,
        tier2_name: str | None = None,
        tier3_name: str | None = None,
    ):
        """Register a product.

        Without any explicit rate the product gets the default rates and is
        flagged ``is_default_rates``. A single missing rate disables that tier.
        """
        sku = (sku or "").strip()
        if not sku:
            raise ValidationError({"sku": ["SKU is required"]})

        is_default = rate1 is None and rate2 is None
        if is_default:
            rate1, rate2 = default_rates()

        now = datetime.now(UTC)
        product = cls(
            sku=sku,
            product_type=product_type,
            tier1_name=tier1_name or DEFAULT_TIER_NAMES[0],
            tier2_name=tier2_name or DEFAULT_TIER_NAMES[1],
            tier3_name=tier3_name or DEFAULT_TIER_NAMES[2],
            rate1=rate1 or 0,
            rate2=rate2 or 0,
            is_default_rates=is_default,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductRegistered(
                sku=sku,
                product_type=product_type or "",
                tier1_name=product.tier1_name,
                tier2_name=product.tier2_name,
                tier3_name=product.tier3_name,
                rate1=product.rate1,
                rate2=product.rate2,
                is_default_rates=is_default,
                registered_at=now,
            )
        )
        return product

    def update_rates(self, rate1: int, rate2: int) -> None:
        previous_rate1, previous_rate2 = self.rate1, self.rate2
        now = datetime.now(UTC)
        with atomic_change(self):
            self.rate1 = rate1
            self.rate2 = rate2
            self.is_default_rates = False
            self.updated_at = now
        self.raise_(
            ConversionRatesUpdated(
                sku=str(self.sku),
                previous_rate1=previous_rate1,
                previous_rate2=previous_rate2,
                rate1=rate1,
                rate2=rate2,
                updated_at=now,
            )
        )
