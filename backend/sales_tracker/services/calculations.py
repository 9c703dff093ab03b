"""
Sales calculation engine.

Turns raw daily entries into the derived retail ratios and combines several
entries into period totals. Records are plain mappings with the keys
``date``, ``employee_id``, ``visitors``, ``transactions``, ``units``,
``revenue`` and ``hours_worked``; derived records add the five ratio keys.
"""

import logging
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

INPUT_FIELDS = ("visitors", "transactions", "units", "revenue", "hours_worked")
RATIO_FIELDS = ("conversion", "units_per_transaction", "average_price", "average_ticket", "productivity")
# revenue is only ever a numerator
DIVISOR_FIELDS = ("visitors", "transactions", "units", "hours_worked")

RATIO_TOLERANCE = 0.01
INVALID_INPUT_MESSAGE = "Todos los valores deben ser mayores que 0"

CONVERSION_SUCCESS = 15
CONVERSION_WARNING = 10


class InvalidInputError(ValueError):
    """A single entry cannot produce ratios (a divisor is zero, negative or missing)"""


class DedupeMode(Enum):
    NONE = "none"
    EMPLOYEE = "employee"
    DAY_AND_EMPLOYEE = "day_and_employee"


def round_to(value: float, decimals: int = 2) -> float:
    """Round half away from zero at the given decimal place"""
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _to_number(value):
    if value is None or value == "":
        return 0
    if isinstance(value, str):
        return float(value.replace(",", "."))
    return value


def calculate_ratios(entry: Mapping, decimals: Optional[int] = 2) -> Dict[str, float]:
    """
    Calculate the five derived ratios of one entry.

    Raises InvalidInputError when visitors, transactions, units or
    hours_worked is not strictly positive. ``decimals=None`` skips rounding.
    """
    try:
        values = {field: _to_number(entry.get(field)) for field in INPUT_FIELDS}
        valid = all(values[field] > 0 for field in DIVISOR_FIELDS)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(INVALID_INPUT_MESSAGE) from e

    if not valid:
        raise InvalidInputError(INVALID_INPUT_MESSAGE)

    visitors = values["visitors"]
    transactions = values["transactions"]
    units = values["units"]
    revenue = values["revenue"]
    hours = values["hours_worked"]

    ratios = {
        "conversion": (transactions * 100) / visitors,
        "units_per_transaction": units / transactions,
        "average_price": revenue / units,
        "average_ticket": revenue / transactions,
        "productivity": revenue / hours,
    }
    if decimals is None:
        return ratios
    return {name: round_to(value, decimals) for name, value in ratios.items()}


def validate_calculations(ratios: Mapping, tolerance: float = RATIO_TOLERANCE) -> bool:
    """Cross-check: average ticket must equal units per transaction × average price"""
    expected_ticket = ratios["units_per_transaction"] * ratios["average_price"]
    return abs(ratios["average_ticket"] - expected_ticket) < tolerance


def zero_ratios() -> Dict[str, float]:
    return {name: 0 for name in RATIO_FIELDS}


def day_of(value) -> Optional[date]:
    """Calendar day of a date, datetime or ISO string"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def employee_key(record: Mapping) -> Hashable:
    return record.get("employee_id")


def day_employee_key(record: Mapping) -> Hashable:
    return (day_of(record.get("date")), record.get("employee_id"))


def split_duplicates(entries: Iterable[Mapping], key: Callable[[Mapping], Hashable]) -> Tuple[List[Mapping], List[Mapping]]:
    """
    Keep the first record per key, in encounter order.

    Returns ``(kept, discarded)``. Callers pass records most-recent-first so
    the latest report of a day wins.
    """
    kept = []
    discarded = []
    seen = set()
    for record in entries:
        k = key(record)
        if k in seen:
            discarded.append(record)
            continue
        seen.add(k)
        kept.append(record)
    return kept, discarded


def _order_by_roster(records: List[Mapping], roster: Optional[Sequence[str]], group=None) -> List[Mapping]:
    """Roster order within each group; groups keep their first-seen order"""
    if not roster:
        return records
    position = {employee: i for i, employee in enumerate(roster)}
    group_rank = {}
    for record in records:
        group_rank.setdefault(group(record) if group else None, len(group_rank))

    def sort_key(record):
        rank = group_rank[group(record) if group else None]
        return rank, position.get(record.get("employee_id"), len(roster))

    # sorted() is stable: unknown employees keep their encounter order
    return sorted(records, key=sort_key)


def _unify(entries, key, roster, label, group=None):
    kept, discarded = split_duplicates(entries or [], key)
    if discarded:
        logger.warning(
            "Discarded %d duplicate %s record(s): %s",
            len(discarded),
            label,
            [(day_of(r.get("date")), r.get("employee_id"), r.get("id")) for r in discarded],
        )
    return _order_by_roster(kept, roster, group)


def unify_daily_sales(entries: Iterable[Mapping], roster: Optional[Sequence[str]] = None) -> List[Mapping]:
    """One record per employee (for a single day's records)"""
    return _unify(entries, employee_key, roster, "daily")


def unify_history_sales(entries: Iterable[Mapping], roster: Optional[Sequence[str]] = None) -> List[Mapping]:
    """One record per (calendar day, employee) across several days"""
    return _unify(entries, day_employee_key, roster, "history", group=lambda r: day_of(r.get("date")))


def roster_presence(entries: Iterable[Mapping], roster: Sequence[str]) -> Dict[str, bool]:
    present = {record.get("employee_id") for record in entries}
    return {employee: employee in present for employee in roster}


def aggregate_sales(
    entries: Sequence[Mapping],
    dedupe: DedupeMode = DedupeMode.EMPLOYEE,
    roster: Optional[Sequence[str]] = None,
) -> Optional[Dict[str, float]]:
    """
    Combine entries into one period record.

    Ratios are re-derived from the summed inputs, never averaged from the
    per-entry ratios. Degenerate totals produce all-zero ratios instead of an
    error; only an empty collection returns None.
    """
    if not entries:
        return None

    if dedupe is DedupeMode.EMPLOYEE:
        entries = unify_daily_sales(entries, roster)
    elif dedupe is DedupeMode.DAY_AND_EMPLOYEE:
        entries = unify_history_sales(entries, roster)

    totals = {field: 0 for field in INPUT_FIELDS}
    for sale in entries:
        for field in INPUT_FIELDS:
            totals[field] += _to_number(sale.get(field))

    if totals["visitors"] == 0 and totals["transactions"] == 0:
        return {**totals, **zero_ratios()}

    try:
        ratios = calculate_ratios(totals)
    except InvalidInputError:
        logger.debug("Aggregate totals not valid for ratios, using zeros: %s", totals)
        ratios = zero_ratios()

    return {**totals, **ratios}


def get_summary_stats(records: Sequence[Mapping], field: str) -> Dict[str, float]:
    """Average, minimum, maximum and total of one field (descriptive, unweighted)"""
    if not records:
        return {"average": 0, "minimum": 0, "maximum": 0, "total": 0}

    values = [_to_number(record.get(field)) for record in records]
    total = sum(values)

    return {
        "average": round_to(total / len(values), 2),
        "minimum": round_to(min(values), 2),
        "maximum": round_to(max(values), 2),
        "total": round_to(total, 2),
    }


def calculate_trend(current: float, previous: float) -> Dict[str, object]:
    if previous == 0:
        return {"percentage": 0, "direction": "neutral"}

    change = ((current - previous) / previous) * 100

    if change > 0:
        direction = "positive"
    elif change < 0:
        direction = "negative"
    else:
        direction = "neutral"

    return {"percentage": round_to(abs(change), 1), "direction": direction}


def conversion_status(conversion: float) -> str:
    """Dashboard colour band for a conversion percentage"""
    if conversion >= CONVERSION_SUCCESS:
        return "success"
    if conversion >= CONVERSION_WARNING:
        return "warning"
    return "danger"
