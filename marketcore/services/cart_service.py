# marketcore/services/cart_service.py
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from sqlalchemy.orm import Session

from marketcore.data.database import transaction
from marketcore.data.models.cart_item import CartItemModel
from marketcore.domain.errors import CartItemNotFound, CommerceError, InsufficientStock, ValidationError
from marketcore.repos.cart_repo import CartRepo
from marketcore.repos.catalog_repo import CatalogRepo
from marketcore.services.catalog import current_price, resolve_selection
from marketcore.services.stock_ledger import SkuTarget, StockLedger, target_for
from marketcore.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Use cases for the shopper's cart.

    Commands (add, update, remove, clear) change cart lines and SKU
    reservations together in one transaction; the query (get_cart) only reads
    and re-derives availability from the current counters.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepo(db)
        self.catalog = CatalogRepo(db)
        self.ledger = StockLedger(db)

    # query
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(user_id)

        if not cart:
            return {"cart_id": None, "user_id": user_id, "items": [], "total": Decimal("0.00")}

        items = []
        for item in self.repo.get_cart_items(cart.id):
            target = target_for(item.product_id, item.sku_id)
            held = item.quantity if isinstance(target, SkuTarget) else 0
            # fresh read of the counters; nothing about availability is cached
            stock_available = self.ledger.check_available(target, item.quantity, held=held)

            price_now = current_price(item.product, item.sku)
            items.append(
                {
                    **_item_to_dict(item),
                    "product_name": item.product.name,
                    "stock_available": stock_available,
                    "current_price": price_now,
                    "price_changed": price_now != item.price,
                    "line_total": item.price * item.quantity,
                }
            )

        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "items": items,
            "total": sum((i["line_total"] for i in items), Decimal("0.00")),
        }

    # commands
    def add_item(
        self,
        user_id: int,
        product_id: int,
        sku_id: int | None = None,
        quantity: int = 1,
        price_override: Decimal | None = None,
    ) -> Dict[str, Any]:
        _require_quantity(quantity)
        if price_override is not None and price_override < 0:
            raise ValidationError("Price must not be negative")

        with transaction(self.db):
            product, sku = resolve_selection(self.catalog, product_id, sku_id)
            price = price_override if price_override is not None else current_price(product, sku)

            cart = self.repo.get_or_create_cart(user_id)
            target = target_for(product.id, sku_id)
            existing = self.repo.find_cart_item(cart.id, product.id, sku_id)

            # availability is validated for the resulting line quantity
            new_quantity = quantity + (existing.quantity if existing else 0)
            held = existing.quantity if existing and sku is not None else 0
            if not self.ledger.check_available(target, new_quantity, held=held):
                logger.warning(f"Not enough stock to put {new_quantity} of product {product_id} in cart {cart.id}")
                raise InsufficientStock("Not enough stock for the requested quantity")

            # only the delta is reserved, the existing line already holds its part
            self.ledger.reserve(target, quantity)

            if existing:
                logger.info(
                    f"Product {product_id} already in cart {cart.id}, quantity "
                    f"{existing.quantity} -> {new_quantity}"
                )
                existing.quantity = new_quantity
                existing.price = price
                item = existing
            else:
                logger.info(f"Adding product {product_id} (sku {sku_id}) to cart {cart.id}")
                item = self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=cart.id,
                        product_id=product.id,
                        sku_id=sku_id,
                        quantity=quantity,
                        price=price,
                    )
                )
            self.db.flush()
            result = _item_to_dict(item)

        return result

    def add_items(self, user_id: int, product_id: int, selections: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Several option combinations in one request.

        Each line is its own add_item transaction: a rejected line is reported
        and does not undo the lines already added.
        """
        results = []
        for index, selection in enumerate(selections):
            try:
                item = self.add_item(
                    user_id=user_id,
                    product_id=product_id,
                    sku_id=selection.get("sku_id"),
                    quantity=selection.get("quantity", 1),
                    price_override=selection.get("price"),
                )
                results.append({"index": index, "ok": True, "item": item, "error": None})
            except CommerceError as e:
                logger.warning(f"Cart line {index} for product {product_id} rejected: {e}")
                results.append(
                    {"index": index, "ok": False, "item": None, "error": f"{type(e).__name__}: {e}"}
                )
        return results

    def update_quantity(self, cart_item_id: int, new_quantity: int, user_id: int | None = None) -> Dict[str, Any]:
        _require_quantity(new_quantity)

        with transaction(self.db):
            item = self._get_item(cart_item_id, user_id)
            target = target_for(item.product_id, item.sku_id)
            held = item.quantity if isinstance(target, SkuTarget) else 0

            if not self.ledger.check_available(target, new_quantity, held=held):
                raise InsufficientStock("Not enough stock for the requested quantity")

            # one ledger delta instead of release-all then reserve-all
            delta = new_quantity - item.quantity
            if delta > 0:
                self.ledger.reserve(target, delta)
            elif delta < 0:
                self.ledger.release(target, -delta)

            logger.info(f"Cart item {item.id} quantity {item.quantity} -> {new_quantity}")
            item.quantity = new_quantity
            self.db.flush()
            result = _item_to_dict(item)

        return result

    def remove_item(self, cart_item_id: int, user_id: int | None = None) -> None:
        with transaction(self.db):
            item = self._get_item(cart_item_id, user_id)
            self.ledger.release(target_for(item.product_id, item.sku_id), item.quantity)
            self.repo.delete_cart_item(item)

        logger.info(f"Cart item {cart_item_id} removed")

    def clear(self, user_id: int, release_reservations: bool = False) -> int:
        """
        Delete every line of the user's cart.

        Reservations are left in place unless `release_reservations` is set;
        callers that hand the lines over to something else (an order) own them.
        """
        with transaction(self.db):
            cart = self.repo.get_cart_by_user(user_id)
            if not cart:
                return 0

            if release_reservations:
                for item in self.repo.get_cart_items(cart.id):
                    self.ledger.release(target_for(item.product_id, item.sku_id), item.quantity)

            removed = self.repo.delete_cart_items(cart.id)

        logger.info(f"Cleared {removed} items from cart {cart.id}")
        return removed

    def _get_item(self, cart_item_id: int, user_id: int | None) -> CartItemModel:
        item = self.repo.get_cart_item(cart_item_id)
        if not item:
            raise CartItemNotFound(f"Cart item {cart_item_id} not found")
        if user_id is not None and item.cart.user_id != user_id:
            raise PermissionError("No access to this cart item")
        return item


def _require_quantity(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity must be greater than 0")


def _item_to_dict(item: CartItemModel) -> Dict[str, Any]:
    return {
        "cart_item_id": item.id,
        "cart_id": item.cart_id,
        "product_id": item.product_id,
        "sku_id": item.sku_id,
        "quantity": item.quantity,
        "price": item.price,
    }
