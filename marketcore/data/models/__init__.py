#import all models so SQLAlchemy registers them in Base.metadata

from marketcore.data.models.product import ProductModel, ProductSkuModel
from marketcore.data.models.address import AddressModel
from marketcore.data.models.cart import CartModel
from marketcore.data.models.cart_item import CartItemModel
from marketcore.data.models.coupon import CouponModel, UserCouponModel
from marketcore.data.models.order import OrderModel
from marketcore.data.models.order_item import OrderItemModel

__all__ = [
    "ProductModel",
    "ProductSkuModel",
    "AddressModel",
    "CartModel",
    "CartItemModel",
    "CouponModel",
    "UserCouponModel",
    "OrderModel",
    "OrderItemModel",
]
