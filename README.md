# depthbook

Market depth tracking for limit order books. A `Depth` keeps a fixed number
of visible price levels for each side of the book, and for each price it
keeps the order count and the total open quantity. Levels that fall outside
the visible window are kept as excess levels. When a visible level is erased,
the best excess level moves up to fill the gap.

Each change to a visible level gets an increasing change id. A publisher can
use these ids to see which levels have changed since its last update.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Usage

```python
from depthbook.depth import Depth

depth = Depth(5)                    # 5 visible levels per side (the default)

depth.add_order(1236, 300, True)    # bid at 1236 for 300
depth.add_order(1235, 200, True)
depth.add_order(1240, 100, False)   # ask at 1240 for 100

best_bid = depth.bids()[0]
print(best_bid.price, best_bid.order_count, best_bid.aggregate_qty)

# Did anything change since the last publish?
if depth.changed():
    for level in depth.bids():
        if level.changed_since(depth.last_published_change):
            ...
    depth.published()
```

`Depth(size)` raises `ValueError` when `size` is less than one.

### Operations on `Depth`

- `bids()` and `asks()` return the visible levels as a tuple, best first. The
  best bid is the highest price and the best ask is the lowest.
- `add_order(price, qty, is_bid)` adds an order's open quantity to its level.
  If no level exists for that price, one is inserted, and a level pushed out
  of the visible window becomes an excess level.
- `close_order(price, open_qty, is_bid)` removes an order. It returns `True`
  when this erased a visible level.
- `change_qty_order(price, qty_delta, is_bid)` changes a level's quantity by a
  positive or negative amount. Prices with no level are ignored.
- `fill_order(price, fill_qty, filled, is_bid)` applies a fill. If a quantity
  was registered with `ignore_fill_qty(qty, is_bid)`, the fill is taken off
  that quantity instead. `ignore_fill_qty` raises `RuntimeError` when an
  ignored quantity is already pending on that side.
- `replace_order(current_price, new_price, current_qty, new_qty, is_bid)`
  moves or resizes an order. It returns `True` when a visible level was
  erased.
- `needs_bid_restoration()` and `needs_ask_restoration()` tell whether a side
  needs levels restored from the full book. They return the price to restore
  after, or `None` when no restoration is needed. A depth of size one always
  needs restoration.
- `changed()` tells whether anything changed since the last `published()`.
  The `last_change` and `last_published_change` properties hold the change
  ids, and `size` holds the number of visible levels per side.

### Levels

Each `DepthLevel` holds `price`, `order_count`, `aggregate_qty`, `is_excess`
and `last_change`. An empty level has price `0`. `changed_since(change_id)`
tells whether the level changed after the given id. `close_order` and
`decrease_qty` raise `ValueError` if the level has too few orders or too
little quantity for the request.

## What it does not do

This package tracks aggregated depth only. It does not hold individual
orders, match buy orders against sell orders, or report trades. It has no
listener callbacks and no command-line or interactive order entry. The
calling code must send every order event to a `Depth` itself.