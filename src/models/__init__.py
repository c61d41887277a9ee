"""Database model type definitions."""

from src.models.address import Address, AddressCreate, AddressType, AddressUpdate
from src.models.checkout_intent import CheckoutIntent, CheckoutIntentState
from src.models.customer import Customer, CustomerCreate, CustomerUpdate
from src.models.order import Order, OrderCreate, OrderItem, OrderStatus, OrderUpdate, PaymentStatus
from src.models.payment_method import PaymentMethod, PaymentMethodCreate
from src.models.product import Product, ProductCreate, StockMovement

__all__ = [
    "Address",
    "AddressCreate",
    "AddressType",
    "AddressUpdate",
    "CheckoutIntent",
    "CheckoutIntentState",
    "Customer",
    "CustomerCreate",
    "CustomerUpdate",
    "Order",
    "OrderCreate",
    "OrderItem",
    "OrderStatus",
    "OrderUpdate",
    "PaymentMethod",
    "PaymentMethodCreate",
    "PaymentStatus",
    "Product",
    "ProductCreate",
    "StockMovement",
]
