from .customers import Customer
from .catalog import Product, Item, ProductItem
from .sales import Order, OrderItem, Payment
from .purchasing import Purchase, PurchaseLine
from .reports import OrderSnapshotCache, DailySalesSummary

__all__ = [
    'Customer',
    'Product', 'Item', 'ProductItem',
    'Order', 'OrderItem', 'Payment',
    'Purchase', 'PurchaseLine',
    'OrderSnapshotCache', 'DailySalesSummary',
]
