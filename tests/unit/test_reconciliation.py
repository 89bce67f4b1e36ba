"""
Сверка незавершенных закрытий
"""
from datetime import timedelta

import pytest

from database.models.auction import Auction
from database.models.product import Product
from services.reconciliation import find_incomplete_closures, reconcile
from services.scheduler import check_and_finish_auctions
from services.storage import SqlStorageGateway
from tests.fixtures.marketplace import NOW

LATER = NOW + timedelta(minutes=30)


class FlakyStorage(SqlStorageGateway):
    """Шлюз, у которого отказывает запись заказа"""

    fail_orders = True

    async def create_order(self, order):
        if self.fail_orders:
            raise RuntimeError("order write failed")
        return await super().create_order(order)


class TestReconcile:
    @pytest.mark.asyncio
    async def test_repairs_incomplete_sale(self, session_maker, dispatcher, market):
        shop = await market.shop()
        product = await market.product(shop, stock=2)
        auction = await market.auction(shop=shop, product=product)
        winner = await market.user()
        await market.bid(auction, winner, 1000)
        storage = FlakyStorage(session_maker)

        report = await check_and_finish_auctions(storage, dispatcher, NOW)
        assert report.incomplete == [auction.id]

        saved = await market.get(Auction, auction.id)
        assert saved.winner_id == winner.id
        assert await market.orders(auction.id) == []

        storage.fail_orders = False
        result = await reconcile(storage, dispatcher, LATER)

        assert result.found == 1
        assert result.repaired == [auction.id]
        [order] = await market.orders(auction.id)
        assert order.total == 1180
        assert len(await market.won_records(auction.id)) == 1
        assert (await market.get(Product, product.id)).stock == 1
        assert (await market.get(Auction, auction.id)).settled_at is not None

        again = await reconcile(storage, dispatcher, LATER)
        assert again.found == 0

    @pytest.mark.asyncio
    async def test_does_not_decrement_stock_twice(self, session_maker, dispatcher, market):
        shop = await market.shop()
        product = await market.product(shop, stock=5)
        auction = await market.auction(shop=shop, product=product)
        await market.bid(auction, await market.user(), 1000)

        class FailOnSettle(SqlStorageGateway):
            broken = True

            async def mark_settled(self, auction_id, now):
                if self.broken:
                    raise RuntimeError("settle failed")
                await super().mark_settled(auction_id, now)

        storage = FailOnSettle(session_maker)
        await check_and_finish_auctions(storage, dispatcher, NOW)
        assert (await market.get(Product, product.id)).stock == 4

        storage.broken = False
        result = await reconcile(storage, dispatcher, LATER)

        assert result.repaired == [auction.id]
        assert (await market.get(Product, product.id)).stock == 4
        assert len(await market.orders(auction.id)) == 1
        assert len(await market.messages(auction.id)) == 2

    @pytest.mark.asyncio
    async def test_recent_closures_are_left_alone(self, session_maker, dispatcher, market):
        auction = await market.auction()
        await market.bid(auction, await market.user(), 1000)
        storage = FlakyStorage(session_maker)
        await check_and_finish_auctions(storage, dispatcher, NOW)

        assert await find_incomplete_closures(storage, NOW + timedelta(seconds=10), grace_seconds=300) == []
        refs = await find_incomplete_closures(storage, LATER, grace_seconds=300)
        assert [ref.id for ref in refs] == [auction.id]

    @pytest.mark.asyncio
    async def test_failed_repair_is_reported(self, session_maker, dispatcher, market):
        auction = await market.auction()
        await market.bid(auction, await market.user(), 1000)
        storage = FlakyStorage(session_maker)
        await check_and_finish_auctions(storage, dispatcher, NOW)

        result = await reconcile(storage, dispatcher, LATER)

        assert result.found == 1
        assert result.failed == [auction.id]
        assert result.repaired == []

    @pytest.mark.asyncio
    async def test_settled_auctions_are_not_incomplete(self, storage, dispatcher, market):
        await market.auction()
        await check_and_finish_auctions(storage, dispatcher, NOW)

        assert await find_incomplete_closures(storage, LATER, grace_seconds=0) == []
