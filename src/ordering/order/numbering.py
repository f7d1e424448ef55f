"""Human-readable order numbers.

Format: ``<PREFIX>-<epoch millis>-<process sequence>-<random hex>``, e.g.
``POS-1734512345678-000042-9f3c``. The per-process counter keeps numbers
distinct within one process; the random suffix keeps them distinct across
processes that share a millisecond.
"""

import itertools
import secrets
import time

from ordering.order.order import OrderSource, parse_enum

_PREFIXES = {
    OrderSource.POS: "POS",
    OrderSource.ONLINE: "ORD",
}

_sequence = itertools.count(1)


def generate_order_number(source) -> str:
    source = parse_enum(OrderSource, source, "source")
    millis = time.time_ns() // 1_000_000
    return f"{_PREFIXES[source]}-{millis}-{next(_sequence) % 1_000_000:06d}-{secrets.token_hex(2)}"
