"""
Generated identifiers for batches and counter settlements.

Format: PREFIX + UTC timestamp (YYYYMMDDHHMMSS) + "_" + 6 random uppercase alphanumerics.
Examples:
    BATCH_20260312094501_K3Q9ZA
    COUNTER_20260312101233_7HD2LM
"""

import secrets
import string
from datetime import datetime, timezone

from app.core.config import settings

_ALPHABET = string.ascii_uppercase + string.digits


def _stamp(prefix: str) -> str:
    now = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    random_part = "".join(secrets.choice(_ALPHABET) for _ in range(6))
    return f"{prefix}{now}_{random_part}"


def new_batch_id() -> str:
    return _stamp("BATCH_")


def new_counter_reference() -> str:
    """Reference recorded for cash/counter settlements (no gateway transaction)."""
    return _stamp(settings.counter_reference_prefix)
