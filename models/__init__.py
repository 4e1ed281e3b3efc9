from models.users import User
from models.addresses import Address
from models.orders import Order
from models.order_items import OrderItem
from models.products import Product
from models.product_variants import ProductVariant
from models.categories import Category

__all__ = ["User", "Address", "Order", "OrderItem", "Product", "ProductVariant", "Category"]
