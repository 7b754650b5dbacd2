from __future__ import annotations

import math

# Keeps skip well inside a signed 64-bit BSON int.
MAX_PAGE = 1_000_000


def skip_for(page: int, limit: int) -> int:
    return (min(max(1, int(page)), MAX_PAGE) - 1) * int(limit)


def total_pages(total: int, limit: int) -> int:
    if limit <= 0:
        return 0
    return int(math.ceil(total / limit))
