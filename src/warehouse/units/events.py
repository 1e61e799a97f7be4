"""Product events: registration and conversion-rate changes."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from warehouse.domain import warehouse


@warehouse.event(part_of="Product")
class ProductRegistered:
    """A product and its packaging tiers were registered."""

    __version__ = 1

    sku = Identifier(required=True)
    product_type = String()
    tier1_name = String()
    tier2_name = String()
    tier3_name = String()
    rate1 = Integer(required=True)
    rate2 = Integer(required=True)
    is_default_rates = Boolean(default=False)
    registered_at = DateTime(required=True)


@warehouse.event(part_of="Product")
class ConversionRatesUpdated:
    """A product's tier conversion rates changed."""

    __version__ = 1

    sku = Identifier(required=True)
    previous_rate1 = Integer(required=True)
    previous_rate2 = Integer(required=True)
    rate1 = Integer(required=True)
    rate2 = Integer(required=True)
    updated_at = DateTime(required=True)
