"""Списание остатков товара после продажи на аукционе"""
import logging
from typing import Optional

from services.storage import StorageGateway

logger = logging.getLogger(__name__)


async def decrement(storage: StorageGateway, product_id: int) -> Optional[int]:
    """
    Уменьшить остаток связанного товара на 1

    Отсутствующий товар не ошибка: связь аукциона с товаром
    не влияет на исход аукциона.
    """
    stock = await storage.decrement_stock(product_id)

    if stock is None:
        logger.warning(f"Товар {product_id} не найден, остаток не изменен")
        return None

    if stock == 0:
        logger.info(f"Товар {product_id} закончился, статус out_of_stock")
    else:
        logger.info(f"Остаток товара {product_id}: {stock}")

    return stock
