"""Определение исхода аукциона по ставкам"""
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from database.models.bid import Bid


@dataclass(frozen=True)
class NoBids:
    """Ставок не было"""


@dataclass(frozen=True)
class ReserveNotMet:
    """Старшая ставка ниже резервной цены"""
    bid: Bid

    @property
    def bidder_id(self) -> int:
        return self.bid.user_id

    @property
    def amount(self) -> int:
        return self.bid.amount


@dataclass(frozen=True)
class Winner:
    """Есть победитель"""
    bid: Bid

    @property
    def winner_id(self) -> int:
        return self.bid.user_id

    @property
    def amount(self) -> int:
        return self.bid.amount


Outcome = Union[NoBids, ReserveNotMet, Winner]


def pick_winning_bid(bids: Iterable[Bid]) -> Optional[Bid]:
    """
    Выигрышная ставка: максимальная сумма, при равенстве - более ранняя

    Если совпадает и время, выигрывает ставка с меньшим id.
    """
    return min(
        bids,
        key=lambda bid: (-bid.amount, bid.placed_at, bid.id or 0),
        default=None
    )


def resolve(bids: Iterable[Bid], reserve_price: Optional[int] = None) -> Outcome:
    """Определить исход аукциона"""
    winning_bid = pick_winning_bid(bids)

    if winning_bid is None:
        return NoBids()

    if reserve_price is not None and winning_bid.amount < reserve_price:
        return ReserveNotMet(bid=winning_bid)

    return Winner(bid=winning_bid)
