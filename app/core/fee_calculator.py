"""
Monthly fee computation from a fee schedule and a student's attributes.

Pure functions only: no database access, safe to call at any read time. Breakdowns are
insertion-ordered dicts (component name -> Decimal) and follow the schedule's component order.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel

from app.core.roster import RosterEntry

Breakdown = Dict[str, Decimal]

ZERO = Decimal("0")

# Components whose name contains one of these are billed only to students who opted in to transport.
_TRANSPORT_MARKERS = ("transport", "bus", "van")


def to_decimal(val: Any) -> Decimal:
    if val is None or val == "":
        return ZERO
    if isinstance(val, Decimal):
        return val
    try:
        return Decimal(str(val))
    except InvalidOperation:
        return ZERO


def is_transport_component(name: str) -> bool:
    lowered = (name or "").strip().lower()
    return any(marker in lowered for marker in _TRANSPORT_MARKERS)


class ScheduleRates(BaseModel):
    """Typed view of a fee schedule: ordered components and class -> component -> amount."""

    period_label: str
    components: Tuple[str, ...]
    class_rates: Dict[str, Dict[str, Decimal]]

    class Config:
        frozen = True

    def rates_for(self, class_name: str) -> Optional[Dict[str, Decimal]]:
        return self.class_rates.get(str(class_name).strip())

    def has_class(self, class_name: str) -> bool:
        return self.rates_for(class_name) is not None


def build_schedule_rates(
    period_label: str,
    components: Sequence[str],
    class_rates: Mapping[str, Mapping[str, Any]],
) -> ScheduleRates:
    """Normalize raw (stored or submitted) schedule data: trimmed names, Decimal amounts."""
    names = tuple(str(c).strip() for c in components if str(c).strip())
    rates: Dict[str, Dict[str, Decimal]] = {}
    for class_name, row in (class_rates or {}).items():
        trimmed = {str(k).strip(): to_decimal(v) for k, v in (row or {}).items()}
        rates[str(class_name).strip()] = trimmed
    return ScheduleRates(period_label=period_label, components=names, class_rates=rates)


def compute_virtual(schedule: ScheduleRates, student: RosterEntry) -> Tuple[Breakdown, Decimal]:
    """
    Breakdown and total a student owes for the schedule's period.

    A component is included only if its class amount is > 0 and, for transport components,
    the student has opted in. A class missing from the rate table yields ({}, 0).
    """
    breakdown: Breakdown = {}
    rates = schedule.rates_for(student.class_name)
    if rates is None:
        return breakdown, ZERO
    for name in schedule.components:
        amount = rates.get(name, ZERO)
        if amount <= ZERO:
            continue
        if is_transport_component(name) and not student.transport_facility:
            continue
        breakdown[name] = amount
    return breakdown, sum(breakdown.values(), ZERO)


# --- Storage boundary ---
def breakdown_to_json(breakdown: Breakdown) -> List[Dict[str, str]]:
    return [{"name": name, "amount": str(amount)} for name, amount in breakdown.items()]


def breakdown_from_json(raw: Any) -> Breakdown:
    """Accepts the stored list-of-pairs form; a plain {name: amount} object is read in key order."""
    if not raw:
        return {}
    if isinstance(raw, dict):
        return {str(k): to_decimal(v) for k, v in raw.items()}
    return {str(item["name"]): to_decimal(item.get("amount")) for item in raw}


def class_rates_to_json(class_rates: Mapping[str, Mapping[str, Decimal]]) -> Dict[str, Dict[str, str]]:
    return {cls: {name: str(amount) for name, amount in row.items()} for cls, row in class_rates.items()}
