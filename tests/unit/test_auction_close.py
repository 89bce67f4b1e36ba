"""
Закрытие одного аукциона
"""
import asyncio
import re
from datetime import timedelta

import pytest

from database.models.auction import Auction
from database.models.product import Product
from exceptions import ClosureIncompleteError, WinnerConflictError
from services.auction import Won, close_auction, describe_closure, settle_auction
from services.winner import NoBids, ReserveNotMet
from tests.fixtures.marketplace import NOW


class TestClosureOutcomes:
    @pytest.mark.asyncio
    async def test_no_bids(self, storage, dispatcher, market):
        auction = await market.auction()

        result = await close_auction(storage, dispatcher, auction.id, NOW)

        assert result == NoBids()
        saved = await market.get(Auction, auction.id)
        assert saved.status == "ended"
        assert saved.winner_id is None
        assert saved.final_bid is None
        assert saved.settled_at is not None
        assert await market.orders(auction.id) == []
        assert await market.won_records(auction.id) == []

        messages = await market.messages(auction.id)
        assert [(m.kind, m.recipient_role) for m in messages] == [("seller_no_bids", "seller")]

    @pytest.mark.asyncio
    async def test_reserve_not_met(self, storage, dispatcher, market):
        seller = await market.user()
        auction = await market.auction(shop=await market.shop(owner=seller), reserve_price=1000)
        bidder = await market.user()
        await market.bid(auction, bidder, 800)

        result = await close_auction(storage, dispatcher, auction.id, NOW)

        assert isinstance(result, ReserveNotMet)
        assert result.bidder_id == bidder.id
        assert result.amount == 800
        saved = await market.get(Auction, auction.id)
        assert saved.status == "ended"
        assert saved.winner_id is None
        assert saved.final_bid is None
        assert await market.orders(auction.id) == []
        assert await market.won_records(auction.id) == []

        messages = {(m.kind, m.recipient_user_id, m.amount) for m in await market.messages(auction.id)}
        assert messages == {
            ("seller_reserve_not_met", seller.id, 800),
            ("bidder_reserve_not_met", bidder.id, 800),
        }

    @pytest.mark.asyncio
    async def test_winning_order(self, storage, dispatcher, market):
        seller = await market.user()
        shop = await market.shop(owner=seller)
        product = await market.product(shop, stock=1)
        auction = await market.auction(shop=shop, product=product)
        winner = await market.user()
        await market.bid(auction, await market.user(), 700)
        await market.bid(auction, winner, 1000)

        result = await close_auction(storage, dispatcher, auction.id, NOW)

        assert isinstance(result, Won)
        assert result.winner_id == winner.id
        assert result.final_bid == 1000

        saved = await market.get(Auction, auction.id)
        assert saved.winner_id == winner.id
        assert saved.final_bid == 1000
        assert describe_closure(saved) == "продан"

        [order] = await market.orders(auction.id)
        assert order.id == result.order_id
        assert result.order_number == order.order_number
        assert re.fullmatch(r"ORD-\d{13}-[0-9A-F]{8}", result.order_number)
        assert (order.subtotal, order.tax, order.total, order.shipping_fee) == (1000, 180, 1180, 0)
        assert order.user_id == winner.id
        assert order.shipping_address["city"] == "Bengaluru"

        [record] = await market.won_records(auction.id)
        assert record.user_id == winner.id
        assert record.final_bid == 1000
        assert record.order_created is True
        assert record.order_id == order.id
        assert record.inventory_adjusted is True
        assert record.auction_slug == auction.slug

        stock = await market.get(Product, product.id)
        assert stock.stock == 0
        assert stock.status == "out_of_stock"

        messages = {(m.kind, m.recipient_user_id) for m in await market.messages(auction.id)}
        assert messages == {("winner", winner.id), ("seller_sold", seller.id)}

    @pytest.mark.asyncio
    async def test_tie_break_by_earliest_bid(self, storage, dispatcher, market):
        auction = await market.auction()
        first = await market.user()
        second = await market.user()
        await market.bid(auction, second, 500, placed_at=NOW - timedelta(minutes=5))
        await market.bid(auction, first, 500, placed_at=NOW - timedelta(minutes=10))

        result = await close_auction(storage, dispatcher, auction.id, NOW)

        assert result.winner_id == first.id

    @pytest.mark.asyncio
    async def test_winner_without_address_still_gets_order(self, storage, dispatcher, market):
        auction = await market.auction()
        winner = await market.user(with_address=False)
        await market.bid(auction, winner, 300)

        result = await close_auction(storage, dispatcher, auction.id, NOW)

        [order] = await market.orders(auction.id)
        assert order.id == result.order_id
        assert order.shipping_address is None

    @pytest.mark.asyncio
    async def test_missing_product_does_not_fail_closure(self, storage, dispatcher, market):
        shop = await market.shop()
        product = await market.product(shop)
        auction = await market.auction(shop=shop, product=product)
        await market.bid(auction, await market.user(), 300)

        async def product_gone(product_id):
            return None

        storage.decrement_stock = product_gone

        result = await close_auction(storage, dispatcher, auction.id, NOW)

        assert isinstance(result, Won)
        assert (await market.get(Auction, auction.id)).settled_at is not None


class TestClaim:
    @pytest.mark.asyncio
    async def test_only_one_concurrent_claim_succeeds(self, storage, market):
        auction = await market.auction()

        claims = await asyncio.gather(*(storage.claim_auction(auction.id, NOW) for _ in range(8)))

        assert claims.count(True) == 1

    @pytest.mark.asyncio
    async def test_concurrent_closures_create_single_order(self, storage, dispatcher, market):
        shop = await market.shop()
        product = await market.product(shop, stock=5)
        auction = await market.auction(shop=shop, product=product)
        await market.bid(auction, await market.user(), 900)

        results = await asyncio.gather(
            *(close_auction(storage, dispatcher, auction.id, NOW) for _ in range(5))
        )

        assert sum(isinstance(r, Won) for r in results) == 1
        assert results.count(None) == 4
        assert len(await market.orders(auction.id)) == 1
        assert len(await market.won_records(auction.id)) == 1
        assert (await market.get(Product, product.id)).stock == 4

    @pytest.mark.asyncio
    async def test_already_ended_auction_is_skipped(self, storage, dispatcher, market):
        auction = await market.auction(status="ended")
        await market.bid(auction, await market.user(), 900)

        assert await close_auction(storage, dispatcher, auction.id, NOW) is None
        assert await market.orders(auction.id) == []


class TestPartialFailure:
    @pytest.mark.asyncio
    async def test_side_effect_failure_keeps_auction_ended(self, storage, dispatcher, market):
        auction = await market.auction()
        await market.bid(auction, await market.user(), 900)

        async def broken_create_order(order):
            raise RuntimeError("write failed")

        storage.create_order = broken_create_order

        with pytest.raises(ClosureIncompleteError) as exc_info:
            await close_auction(storage, dispatcher, auction.id, NOW)

        assert exc_info.value.stage == "order"
        assert isinstance(exc_info.value.cause, RuntimeError)
        saved = await market.get(Auction, auction.id)
        assert saved.status == "ended"
        assert saved.settled_at is None
        assert describe_closure(saved) == "закрыт не полностью"
        assert await market.messages(auction.id) == []

    @pytest.mark.asyncio
    async def test_resolution_failure_reports_resolve_stage(self, storage, dispatcher, market):
        auction = await market.auction()

        async def broken_get_bids(auction_id):
            raise RuntimeError("query failed")

        storage.get_bids = broken_get_bids

        with pytest.raises(ClosureIncompleteError) as exc_info:
            await close_auction(storage, dispatcher, auction.id, NOW)

        assert exc_info.value.stage == "resolve"
        assert (await market.get(Auction, auction.id)).status == "ended"

    @pytest.mark.asyncio
    async def test_settle_is_idempotent(self, storage, dispatcher, market):
        shop = await market.shop()
        product = await market.product(shop, stock=3)
        auction = await market.auction(shop=shop, product=product)
        await market.bid(auction, await market.user(), 900)

        first = await close_auction(storage, dispatcher, auction.id, NOW)
        second = await settle_auction(storage, dispatcher, auction.id, NOW)

        assert first == second
        assert len(await market.orders(auction.id)) == 1
        assert len(await market.messages(auction.id)) == 2
        assert (await market.get(Product, product.id)).stock == 2

    @pytest.mark.asyncio
    async def test_different_winner_cannot_overwrite(self, storage, market):
        auction = await market.auction()
        first = await market.user()
        second = await market.user()
        await storage.claim_auction(auction.id, NOW)
        await storage.record_winner(auction.id, first.id, 500)

        await storage.record_winner(auction.id, first.id, 500)
        with pytest.raises(WinnerConflictError):
            await storage.record_winner(auction.id, second.id, 600)

        saved = await market.get(Auction, auction.id)
        assert (saved.winner_id, saved.final_bid) == (first.id, 500)
