"""Product registration: commands and handler."""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from warehouse.domain import warehouse
from warehouse.errors import ProductNotFoundError
from warehouse.units.product import Product


@warehouse.command(part_of="Product")
class RegisterProduct:
    """Register a product with its packaging tiers."""

    sku = Identifier(required=True)
    product_type = String(max_length=50)
    tier1_name = String(max_length=50)
    tier2_name = String(max_length=50)
    tier3_name = String(max_length=50)
    rate1 = Integer(min_value=0)
    rate2 = Integer(min_value=0)


@warehouse.command(part_of="Product")
class UpdateConversionRates:
    """Replace a product's tier conversion rates."""

    sku = Identifier(required=True)
    rate1 = Integer(required=True, min_value=0)
    rate2 = Integer(required=True, min_value=0)


@warehouse.command_handler(part_of=Product)
class ProductRegistrationHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        repo = current_domain.repository_for(Product)
        try:
            repo.get(command.sku)
        except ObjectNotFoundError:
            pass
        else:
            raise ValidationError({"sku": [f"Product {command.sku} is already registered"]})

        product = Product.register(
            sku=command.sku,
            product_type=command.product_type,
            rate1=command.rate1,
            rate2=command.rate2,
            tier1_name=command.tier1_name,
            tier2_name=command.tier2_name,
            tier3_name=command.tier3_name,
        )
        repo.add(product)
        return str(product.sku)

    @handle(UpdateConversionRates)
    def update_conversion_rates(self, command):
        repo = current_domain.repository_for(Product)
        try:
            product = repo.get(command.sku)
        except ObjectNotFoundError:
            raise ProductNotFoundError(command.sku) from None
        product.update_rates(command.rate1, command.rate2)
        repo.add(product)
