"""Формирование заказа для победителя аукциона"""
import secrets
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from config import settings
from database.models.address import Address
from database.models.auction import Auction
from database.models.bid import Bid
from database.models.order import Order, OrderSource, OrderStatus, PaymentStatus
from database.models.user import User

# Для заказов с аукциона доставка бесплатная
AUCTION_SHIPPING_FEE = 0


def generate_order_number(now: datetime) -> str:
    """Номер заказа: время в мс + случайный суффикс"""
    return f"ORD-{int(now.timestamp() * 1000)}-{secrets.token_hex(4).upper()}"


def calculate_totals(subtotal: int, tax_rate: float = None) -> dict:
    """Налог и итоговая сумма"""
    if tax_rate is None:
        tax_rate = settings.ORDER_TAX_RATE
    # Округление половины вверх
    tax = int((Decimal(subtotal) * Decimal(str(tax_rate))).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return {
        "subtotal": subtotal,
        "tax": tax,
        "shipping_fee": AUCTION_SHIPPING_FEE,
        "total": subtotal + tax + AUCTION_SHIPPING_FEE,
    }


def synthesize_order(
    auction: Auction,
    winning_bid: Bid,
    winner: User,
    shipping_address: Optional[Address],
    now: datetime,
    tax_rate: float = None
) -> Order:
    """
    Собрать заказ по выигрышной ставке

    Заказ не сохраняется. Если у победителя нет адреса по умолчанию,
    заказ создается без адреса: покупатель укажет его перед отправкой.
    """
    totals = calculate_totals(winning_bid.amount, tax_rate)
    address = shipping_address.snapshot() if shipping_address else None

    item = {
        "type": "auction",
        "auction_id": auction.id,
        "product_id": auction.product_id,
        "shop_id": auction.shop_id,
        "name": auction.name,
        "slug": auction.slug,
        "image": auction.primary_image,
        "price": winning_bid.amount,
        "quantity": 1,
    }

    return Order(
        order_number=generate_order_number(now),
        user_id=winner.id,
        shop_id=auction.shop_id,
        auction_id=auction.id,
        items=[item],
        customer={
            "name": winner.display_name,
            "email": winner.email,
            "phone": winner.phone,
        },
        shipping_address=address,
        billing_address=address,
        payment_status=PaymentStatus.PENDING.value,
        status=OrderStatus.PENDING.value,
        source=OrderSource.AUCTION.value,
        created_at=now,
        **totals
    )
