"""Модели базы данных"""
from .user import User
from .address import Address
from .shop import Shop
from .product import Product
from .auction import Auction
from .bid import Bid
from .order import Order
from .won_auction import WonAuction
from .outbound_message import OutboundMessage

__all__ = [
    "User",
    "Address",
    "Shop",
    "Product",
    "Auction",
    "Bid",
    "Order",
    "WonAuction",
    "OutboundMessage",
]
