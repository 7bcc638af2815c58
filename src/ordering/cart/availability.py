"""Live availability checks for cart lines against the catalogue and the ledger."""

from protean.utils.globals import current_domain

from ordering.catalogue.product import Product
from ordering.inventory.ledger import InventoryLedger


class CartAvailability:
    """Decides whether a cart line can still be bought as requested."""

    def __init__(self, products=None, ledger=None) -> None:
        self.products = products or current_domain.repository_for(Product)
        self.ledger = ledger or InventoryLedger()

    def __call__(self, item) -> bool:
        product = self.products.find_product(item.product_id)
        if product is None or not product.is_purchasable:
            return False
        return self.ledger.available(item.product_id, item.size, item.color) >= item.quantity


def variant_for(product, size=None, color=None):
    """Size/color only identify stock for variant-bearing products."""
    if not product.has_variants:
        return None, None
    return size or None, color or None
