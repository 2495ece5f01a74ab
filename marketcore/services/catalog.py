# marketcore/services/catalog.py
from marketcore.data.models.product import ProductModel, ProductSkuModel
from marketcore.domain.errors import InvalidSelection, ProductNotFound, SkuNotFound
from marketcore.repos.catalog_repo import CatalogRepo


def resolve_selection(
    catalog: CatalogRepo, product_id: int, sku_id: int | None
) -> tuple[ProductModel, ProductSkuModel | None]:
    """Single products are bought without a SKU, option products only with one of their own SKUs."""
    product = catalog.get_product(product_id)
    if not product:
        raise ProductNotFound(f"Product {product_id} not found")

    if product.is_single_product and sku_id is not None:
        raise InvalidSelection("A single product cannot be selected with a SKU")
    if not product.is_single_product and sku_id is None:
        raise InvalidSelection("An option product must be selected with a SKU")

    if sku_id is None:
        return product, None

    sku = catalog.get_sku(sku_id)
    if not sku:
        raise SkuNotFound(f"SKU {sku_id} not found")
    if sku.product_id != product.id:
        raise InvalidSelection(f"SKU {sku_id} does not belong to product {product_id}")
    return product, sku


def current_price(product: ProductModel, sku: ProductSkuModel | None):
    return sku.sale_price if sku is not None else product.sale_price
