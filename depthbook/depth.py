"""Aggregated limit-order depth: a fixed number of visible price levels per side."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sortedcontainers import SortedDict

INVALID_LEVEL_PRICE = 0
MARKET_ORDER_BID_SORT_PRICE = 0xFFFFFFFF
MARKET_ORDER_ASK_SORT_PRICE = 0


@dataclass
class DepthLevel:
    """Orders at one price, aggregated into a count and a total quantity."""

    price: int = INVALID_LEVEL_PRICE
    order_count: int = 0
    aggregate_qty: int = 0
    is_excess: bool = False
    last_change: int = 0

    def init(self, price: int, is_excess: bool) -> None:
        """Reset the level to an empty level at ``price``."""
        self.price = price
        self.order_count = 0
        self.aggregate_qty = 0
        self.is_excess = is_excess

    def add_order(self, qty: int) -> None:
        """Add an order of ``qty`` to the level."""
        self.order_count += 1
        self.aggregate_qty += qty

    def close_order(self, qty: int) -> bool:
        """Remove an order with open quantity ``qty``; True if the level is now empty."""
        if self.order_count == 0:
            raise ValueError("order count too low to close an order")
        if self.aggregate_qty < qty:
            raise ValueError("aggregate quantity too low to close an order")
        self.order_count -= 1
        self.aggregate_qty -= qty
        return self.order_count == 0

    def increase_qty(self, qty: int) -> None:
        """Add ``qty`` to the aggregate quantity."""
        self.aggregate_qty += qty

    def decrease_qty(self, qty: int) -> None:
        """Take ``qty`` from the aggregate quantity."""
        if self.aggregate_qty < qty:
            raise ValueError("aggregate quantity too low to decrease")
        self.aggregate_qty -= qty

    def changed_since(self, change_id: int) -> bool:
        """Whether the level changed after ``change_id``."""
        return change_id < self.last_change

    def _assign(self, other: DepthLevel) -> None:
        # The excess flag stays with the slot; a blank level keeps its stamp.
        self.price = other.price
        self.order_count = other.order_count
        self.aggregate_qty = other.aggregate_qty
        if other.price != INVALID_LEVEL_PRICE:
            self.last_change = other.last_change


class Depth:
    """Bid and ask depth with ``size`` visible levels per side and unbounded excess."""

    def __init__(self, size: int = 5) -> None:
        if size < 1:
            raise ValueError("Depth size less than one not allowed")
        self._size = size
        self._bids = [DepthLevel() for _ in range(size)]
        self._asks = [DepthLevel() for _ in range(size)]
        self._last_change = 0
        self._last_published_change = 0
        self._ignore_bid_fill_qty = 0
        self._ignore_ask_fill_qty = 0
        self._excess_bids: SortedDict = SortedDict()
        self._excess_asks: SortedDict = SortedDict()

    @property
    def size(self) -> int:
        return self._size

    @property
    def last_change(self) -> int:
        """ID of the last change."""
        return self._last_change

    @property
    def last_published_change(self) -> int:
        """ID of the last published change."""
        return self._last_published_change

    def bids(self) -> Tuple[DepthLevel, ...]:
        """Visible bid levels, best first."""
        return tuple(self._bids)

    def asks(self) -> Tuple[DepthLevel, ...]:
        """Visible ask levels, best first."""
        return tuple(self._asks)

    def add_order(self, price: int, qty: int, is_bid: bool) -> None:
        """Add an order of ``qty`` at ``price``."""
        last_change_copy = self._last_change
        level, _ = self._find_level(price, is_bid)
        if level is not None:
            level.add_order(qty)
            if not level.is_excess:
                self._last_change = last_change_copy + 1
                level.last_change = last_change_copy + 1

    def ignore_fill_qty(self, qty: int, is_bid: bool) -> None:
        """Ignore the next ``qty`` of fills on a side (matched at accept time)."""
        if is_bid:
            if self._ignore_bid_fill_qty:
                raise RuntimeError("Unexpected ignore_bid_fill_qty_")
            self._ignore_bid_fill_qty = qty
        else:
            if self._ignore_ask_fill_qty:
                raise RuntimeError("Unexpected ignore_ask_fill_qty_")
            self._ignore_ask_fill_qty = qty

    def fill_order(self, price: int, fill_qty: int, filled: bool, is_bid: bool) -> None:
        """Apply a fill of ``fill_qty``; ``filled`` means the order is complete."""
        if is_bid and self._ignore_bid_fill_qty:
            self._ignore_bid_fill_qty -= fill_qty
        elif not is_bid and self._ignore_ask_fill_qty:
            self._ignore_ask_fill_qty -= fill_qty
        elif filled:
            self.close_order(price, fill_qty, is_bid)
        else:
            self.change_qty_order(price, -fill_qty, is_bid)

    def close_order(self, price: int, open_qty: int, is_bid: bool) -> bool:
        """Cancel or fill an order; True if a visible level was erased."""
        level, index = self._find_level(price, is_bid, should_create=False)
        if level is None:
            return False
        if level.close_order(open_qty):
            self._erase_level(level, index, is_bid)
            return True
        self._last_change += 1
        level.last_change = self._last_change
        return False

    def change_qty_order(self, price: int, qty_delta: int, is_bid: bool) -> None:
        """Change the quantity at ``price`` by ``qty_delta``; unknown prices are ignored."""
        level, _ = self._find_level(price, is_bid, should_create=False)
        if level is not None and qty_delta:
            if qty_delta > 0:
                level.increase_qty(qty_delta)
            else:
                level.decrease_qty(-qty_delta)
            self._last_change += 1
            level.last_change = self._last_change

    def replace_order(
        self,
        current_price: int,
        new_price: int,
        current_qty: int,
        new_qty: int,
        is_bid: bool,
    ) -> bool:
        """Replace an order's price and quantity; True if a visible level was erased."""
        if current_price == new_price:
            self.change_qty_order(current_price, new_qty - current_qty, is_bid)
            return False
        self.add_order(new_price, new_qty, is_bid)
        return self.close_order(current_price, current_qty, is_bid)

    def needs_bid_restoration(self) -> Optional[int]:
        """Price to restore bids after, or None if no restoration is needed."""
        if self._size > 1:
            price = self._bids[-2].price
            return None if price == INVALID_LEVEL_PRICE else price
        return MARKET_ORDER_BID_SORT_PRICE

    def needs_ask_restoration(self) -> Optional[int]:
        """Price to restore asks after, or None if no restoration is needed."""
        if self._size > 1:
            price = self._asks[-2].price
            return None if price == INVALID_LEVEL_PRICE else price
        return MARKET_ORDER_ASK_SORT_PRICE

    def changed(self) -> bool:
        """Whether the depth changed since the last publish."""
        return self._last_change > self._last_published_change

    def published(self) -> None:
        """Note that the current state has been published."""
        self._last_published_change = self._last_change

    def _side(self, is_bid: bool) -> List[DepthLevel]:
        return self._bids if is_bid else self._asks

    def _excess(self, is_bid: bool) -> SortedDict:
        return self._excess_bids if is_bid else self._excess_asks

    def _find_level(
        self, price: int, is_bid: bool, should_create: bool = True
    ) -> Tuple[Optional[DepthLevel], Optional[int]]:
        levels = self._side(is_bid)
        for index, level in enumerate(levels):
            if level.price == price:
                return level, index
            if not should_create:
                continue
            if level.price == INVALID_LEVEL_PRICE:
                level.init(price, False)
                return level, index
            if (is_bid and level.price < price) or (not is_bid and level.price > price):
                self._insert_level_before(index, is_bid, price)
                return level, index

        excess = self._excess(is_bid)
        if price in excess:
            return excess[price], None
        if should_create:
            new_level = DepthLevel()
            new_level.init(price, True)
            excess[price] = new_level
            return new_level, None
        return None, None

    def _insert_level_before(self, index: int, is_bid: bool, price: int) -> None:
        levels = self._side(is_bid)
        last_level = levels[-1]
        if last_level.price != INVALID_LEVEL_PRICE:
            self._excess(is_bid).setdefault(
                last_level.price, dataclasses.replace(last_level, is_excess=True)
            )
        self._last_change += 1
        for position in range(len(levels) - 2, index - 1, -1):
            source = levels[position]
            target = levels[position + 1]
            target._assign(source)
            if source.price != INVALID_LEVEL_PRICE:
                target.last_change = self._last_change
        levels[index].init(price, False)

    def _erase_level(self, level: DepthLevel, index: Optional[int], is_bid: bool) -> None:
        excess = self._excess(is_bid)
        if level.is_excess or index is None:
            excess.pop(level.price, None)
            return

        levels = self._side(is_bid)
        last_index = len(levels) - 1
        self._last_change += 1
        for position in range(index, last_index):
            current = levels[position]
            if current.price != INVALID_LEVEL_PRICE or position == index:
                current._assign(levels[position + 1])
                current.last_change = self._last_change

        last_level = levels[last_index]
        if index == last_index or last_level.price != INVALID_LEVEL_PRICE:
            if excess:
                _, best = excess.popitem(-1 if is_bid else 0)
                last_level._assign(best)
            else:
                last_level.init(INVALID_LEVEL_PRICE, False)
            last_level.last_change = self._last_change