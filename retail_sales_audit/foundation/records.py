"""Transaction record model and ingest contract.

The transaction contract captures the eleven fields every downstream
analysis relies on. Raw rows arrive already typed (dates, times,
decimals, strings) from an upstream loader; the contract checks that the
types are what we expect and builds immutable :class:`TransactionRecord`
instances. Nothing is parsed from text here: a string where a date is
expected is rejected, not guessed at.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Mapping, Sequence


class Gender(str, Enum):
    """Customer gender as recorded at the point of sale."""

    MALE = "Male"
    FEMALE = "Female"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class TransactionRecord:
    """A single purchase event.

    Attributes
    ----------
    transaction_id:
        Unique, immutable transaction identifier.
    sale_date:
        Calendar date of the sale.
    sale_time:
        Time of day of the sale.
    customer_id:
        Identifier of the purchasing customer.
    gender:
        Customer gender.
    age:
        Customer age in years at the time of purchase.
    category:
        Product category tag (e.g., "Beauty", "Clothing").
    quantity:
        Number of units sold.
    unit_price:
        Price per unit.
    cogs:
        Cost of goods sold for the whole transaction.
    total_sale:
        Total transaction amount.
    """

    transaction_id: str
    sale_date: date
    sale_time: time
    customer_id: str
    gender: Gender
    age: int
    category: str
    quantity: int
    unit_price: Decimal
    cogs: Decimal
    total_sale: Decimal

    @property
    def profit(self) -> Decimal:
        """Gross profit of the transaction (``total_sale - cogs``)."""
        return self.total_sale - self.cogs

    @property
    def sale_month(self) -> str:
        """Calendar month of the sale formatted as ``YYYY-MM``."""
        return self.sale_date.strftime("%Y-%m")

    @property
    def day_of_week(self) -> int:
        """Day of week with Sunday as 0 and Saturday as 6."""
        return self.sale_date.isoweekday() % 7

    @property
    def time_period(self) -> str:
        hour = self.sale_time.hour
        if 6 <= hour < 12:
            return "Morning"
        if 12 <= hour < 17:
            return "Afternoon"
        if 17 <= hour < 21:
            return "Evening"
        return "Night"

    @property
    def season(self) -> str:
        month = self.sale_date.month
        if month in (12, 1, 2):
            return "Winter"
        if month in (3, 4, 5):
            return "Spring"
        if month in (6, 7, 8):
            return "Summer"
        return "Fall"

    @property
    def age_group(self) -> str:
        if self.age < 25:
            return "Gen Z"
        if self.age < 35:
            return "Millennials"
        if self.age < 45:
            return "Gen X"
        if self.age < 55:
            return "Boomers"
        return "Seniors"


#: Fields a caller may group, rank or describe by. Derived fields are
#: computed from the stored ones on access.
FIELD_SELECTORS: dict[str, Callable[[TransactionRecord], Any]] = {
    "transaction_id": lambda r: r.transaction_id,
    "sale_date": lambda r: r.sale_date,
    "sale_time": lambda r: r.sale_time,
    "customer_id": lambda r: r.customer_id,
    "gender": lambda r: r.gender.value,
    "age": lambda r: r.age,
    "category": lambda r: r.category,
    "quantity": lambda r: r.quantity,
    "unit_price": lambda r: r.unit_price,
    "cogs": lambda r: r.cogs,
    "total_sale": lambda r: r.total_sale,
    "profit": lambda r: r.profit,
    "sale_month": lambda r: r.sale_month,
    "year": lambda r: r.sale_date.year,
    "month": lambda r: r.sale_date.month,
    "day_of_week": lambda r: r.day_of_week,
    "hour": lambda r: r.sale_time.hour,
    "time_period": lambda r: r.time_period,
    "season": lambda r: r.season,
    "age_group": lambda r: r.age_group,
}

#: Selectable fields holding numbers (usable with sum/avg/stddev).
NUMERIC_FIELDS = frozenset(
    {
        "age",
        "quantity",
        "unit_price",
        "cogs",
        "total_sale",
        "profit",
        "year",
        "month",
        "day_of_week",
        "hour",
    }
)


def resolve_field(name: str) -> Callable[[TransactionRecord], Any]:
    """Return the selector for ``name`` or raise ``ValueError``."""
    try:
        return FIELD_SELECTORS[name]
    except KeyError:
        raise ValueError(
            f"Unknown field '{name}'. Available fields: {sorted(FIELD_SELECTORS)}"
        ) from None


def numeric_value(record: TransactionRecord, name: str) -> Decimal:
    """Return a numeric field of ``record`` as a ``Decimal``."""
    if name not in NUMERIC_FIELDS:
        raise ValueError(
            f"Field '{name}' is not numeric. Numeric fields: {sorted(NUMERIC_FIELDS)}"
        )
    value = FIELD_SELECTORS[name](record)
    return value if isinstance(value, Decimal) else Decimal(value)


class Dataset(Sequence[TransactionRecord]):
    """Read-only ordered collection of validated transaction records.

    The dataset is frozen on construction. Analyses receive it (or any
    other sequence of records) and never modify it, which makes it safe
    to share between concurrent callers.
    """

    __slots__ = ("_records",)

    def __init__(self, records: Iterable[TransactionRecord] = ()) -> None:
        self._records: tuple[TransactionRecord, ...] = tuple(records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[TransactionRecord]:
        return iter(self._records)

    def __getitem__(self, index):  # type: ignore[override]
        if isinstance(index, slice):
            return Dataset(self._records[index])
        return self._records[index]

    def __repr__(self) -> str:
        return f"Dataset({len(self._records)} records)"

    def customer_ids(self) -> list[str]:
        """Distinct customer ids in order of first appearance."""
        return list(dict.fromkeys(r.customer_id for r in self._records))

    def categories(self) -> list[str]:
        """Distinct categories in order of first appearance."""
        return list(dict.fromkeys(r.category for r in self._records))

    def date_range(self) -> tuple[date, date] | None:
        """Earliest and latest sale dates, or ``None`` when empty."""
        if not self._records:
            return None
        dates = [r.sale_date for r in self._records]
        return min(dates), max(dates)


class TransactionContract:
    """Check raw transaction rows and build canonical records."""

    #: Fields that must be present (and not ``None``) on every raw row.
    REQUIRED_FIELDS = (
        "transaction_id",
        "sale_date",
        "sale_time",
        "customer_id",
        "age",
        "category",
        "quantity",
        "unit_price",
        "cogs",
        "total_sale",
    )

    #: Column names used by the source retail_sales table.
    ALIASES = {
        "transactions_id": "transaction_id",
        "price_per_unit": "unit_price",
    }

    def parse_records(
        self, records: Iterable[Mapping[str, Any]]
    ) -> list[TransactionRecord]:
        """Validate raw rows and return transaction records.

        Parameters
        ----------
        records:
            Iterable of raw transaction mappings. Values must already be
            typed: ``date`` for ``sale_date``, ``time`` for ``sale_time``,
            ``int`` for ``quantity``/``age`` and ``Decimal``/``int``/``float``
            for monetary fields.

        Raises
        ------
        ValueError
            If a row misses a required field, carries an unknown gender or
            repeats a transaction id.
        TypeError
            If a value has the wrong type.
        """

        parsed: list[TransactionRecord] = []
        seen_ids: dict[str, int] = {}
        for idx, record in enumerate(records):
            data = {self.ALIASES.get(key, key): value for key, value in record.items()}

            missing = [name for name in self.REQUIRED_FIELDS if data.get(name) is None]
            if missing:
                raise ValueError(
                    "Record missing required transaction fields",
                    {"missing_fields": missing, "record_index": idx},
                )

            transaction_id = _identifier(data["transaction_id"], "transaction_id", idx)
            if transaction_id in seen_ids:
                raise ValueError(
                    "Duplicate transaction_id",
                    {
                        "transaction_id": transaction_id,
                        "record_index": idx,
                        "first_index": seen_ids[transaction_id],
                    },
                )
            seen_ids[transaction_id] = idx

            sale_date = data["sale_date"]
            if isinstance(sale_date, datetime) or not isinstance(sale_date, date):
                raise TypeError(
                    "sale_date must be a date instance",
                    {"record_index": idx, "value": sale_date},
                )
            sale_time = data["sale_time"]
            if not isinstance(sale_time, time):
                raise TypeError(
                    "sale_time must be a time instance",
                    {"record_index": idx, "value": sale_time},
                )

            category = data["category"]
            if not isinstance(category, str):
                raise TypeError(
                    "category must be a string",
                    {"record_index": idx, "value": category},
                )

            parsed.append(
                TransactionRecord(
                    transaction_id=transaction_id,
                    sale_date=sale_date,
                    sale_time=sale_time,
                    customer_id=_identifier(data["customer_id"], "customer_id", idx),
                    gender=_gender(data.get("gender"), idx),
                    age=_integer(data["age"], "age", idx),
                    category=category,
                    quantity=_integer(data["quantity"], "quantity", idx),
                    unit_price=_money(data["unit_price"], "unit_price", idx),
                    cogs=_money(data["cogs"], "cogs", idx),
                    total_sale=_money(data["total_sale"], "total_sale", idx),
                )
            )
        return parsed


def _identifier(value: Any, name: str, idx: int) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise TypeError(
            f"{name} must be a string or integer",
            {"record_index": idx, "value": value},
        )
    return str(value)


def _integer(value: Any, name: str, idx: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(
            f"{name} must be an integer",
            {"record_index": idx, "value": value},
        )
    return value


def _money(value: Any, name: str, idx: int) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(
            f"{name} must be a Decimal, int or float",
            {"record_index": idx, "value": value},
        )
    return Decimal(str(value))


def _gender(value: Any, idx: int) -> Gender:
    if value is None:
        return Gender.UNKNOWN
    if isinstance(value, Gender):
        return value
    if not isinstance(value, str):
        raise TypeError(
            "gender must be a string",
            {"record_index": idx, "value": value},
        )
    for member in Gender:
        if member.value.lower() == value.strip().lower():
            return member
    raise ValueError(
        "Unknown gender value",
        {"record_index": idx, "value": value},
    )
