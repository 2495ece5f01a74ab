# marketcore/repos/catalog_repo.py
from sqlalchemy.orm import Session

from marketcore.data.models.product import ProductModel, ProductSkuModel


class CatalogRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_sku(self, sku_id: int) -> ProductSkuModel | None:
        return self.db.get(ProductSkuModel, sku_id)
