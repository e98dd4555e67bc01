from __future__ import annotations

import math
import random
from dataclasses import dataclass
from datetime import date, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class RetailScenario:
    """Configuration for the retail transaction generator.

    Attributes
    ----------
    categories: Product categories sampled uniformly per line.
    price_points: Unit prices offered in the store.
    max_quantity: Largest quantity on a single line (minimum is 1).
    orders_per_customer: Average number of purchases per customer.
    cogs_ratio_low / cogs_ratio_high: Bounds of the cost-of-goods ratio.
    cogs_exceeds_sale_rate: Share of rows whose COGS is pushed above the sale.
    invalid_row_rate: Share of rows with zero quantity and amounts.
    seed: Optional RNG seed for reproducibility.
    """

    categories: Sequence[str] = ("Beauty", "Clothing", "Electronics")
    price_points: Sequence[int] = (25, 30, 50, 300, 500)
    max_quantity: int = 4
    orders_per_customer: float = 3.0
    cogs_ratio_low: float = 0.25
    cogs_ratio_high: float = 0.6
    cogs_exceeds_sale_rate: float = 0.0
    invalid_row_rate: float = 0.0
    seed: Optional[int] = None


def _order_count(rng: random.Random, lam: float) -> int:
    # Knuth's Poisson draw; every customer buys at least once
    L = math.exp(-max(lam - 1.0, 0.0))
    k = 0
    p = 1.0
    while p > L:
        k += 1
        p *= rng.random()
    return max(1, k)


def _sample_time(rng: random.Random) -> time:
    return time(6 + rng.randrange(16), rng.randrange(60), rng.randrange(60))


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def generate_retail_transactions(
    n_customers: int,
    start: date,
    end: date,
    *,
    scenario: Optional[RetailScenario] = None,
    seed: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Generate raw retail sale rows for ``n_customers`` between start/end.

    Each customer gets a fixed gender and age and a first purchase date
    drawn uniformly from the range; later purchases fall between that
    date and ``end``. Rows are returned in chronological order with
    sequential ``transactions_id`` values, using the source table's
    column names as accepted by :meth:`TransactionContract.parse_records`.

    ``seed`` overrides ``scenario.seed`` when both are given.
    """

    if n_customers <= 0:
        return []
    if start > end:
        raise ValueError("start date must be <= end date")
    scenario = scenario or RetailScenario()
    if scenario.max_quantity < 1:
        raise ValueError("max_quantity must be >= 1")
    rng = random.Random(seed if seed is not None else scenario.seed)
    total_days = (end - start).days + 1

    rows: List[Dict[str, Any]] = []
    for i in range(n_customers):
        customer_id = str(i + 1)
        gender = rng.choice(("Male", "Female"))
        age = 18 + rng.randrange(47)
        first_offset = rng.randrange(total_days)

        for order in range(_order_count(rng, scenario.orders_per_customer)):
            offset = (
                first_offset
                if order == 0
                else first_offset + rng.randrange(total_days - first_offset)
            )
            quantity = 1 + rng.randrange(scenario.max_quantity)
            unit_price = Decimal(rng.choice(list(scenario.price_points)))
            total_sale = _money(unit_price * quantity)
            ratio = Decimal(str(round(rng.uniform(scenario.cogs_ratio_low, scenario.cogs_ratio_high), 2)))
            cogs = _money(total_sale * ratio)

            draw = rng.random()
            if draw < scenario.invalid_row_rate:
                quantity = 0
                total_sale = Decimal("0.00")
                cogs = Decimal("0.00")
            elif draw < scenario.invalid_row_rate + scenario.cogs_exceeds_sale_rate:
                cogs = _money(total_sale * Decimal("1.2"))

            rows.append(
                {
                    "sale_date": start + timedelta(days=offset),
                    "sale_time": _sample_time(rng),
                    "customer_id": customer_id,
                    "gender": gender,
                    "age": age,
                    "category": rng.choice(list(scenario.categories)),
                    "quantity": quantity,
                    "price_per_unit": unit_price,
                    "cogs": cogs,
                    "total_sale": total_sale,
                }
            )

    rows.sort(key=lambda r: (r["sale_date"], r["sale_time"], int(r["customer_id"])))
    for seq, row in enumerate(rows, start=1):
        row["transactions_id"] = seq
    return rows
