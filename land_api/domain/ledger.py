# SPDX-License-Identifier: Apache-2.0

"""
Ledger statistics merge.

Each chain read produces one FieldResult. merge_stats is the only place that
decides how failed reads degrade: last-known value first, then the declared
default.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Mapping, Optional

from ..models.entities import AggregateStats
from ..models.enums import DataFreshness


STAT_FIELDS = ("total_users", "total_lands", "verified_lands")

FALLBACK_DEFAULTS: Dict[str, int] = {name: 0 for name in STAT_FIELDS}


@dataclass
class FieldResult:
    """Outcome of one chain read."""
    field: str
    value: Optional[int] = None
    error: Optional[str] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None


def pending_lands(total_lands: int, verified_lands: int) -> int:
    """On-chain lands not yet verified; approximate and never negative."""
    return max(total_lands - verified_lands, 0)


def merge_stats(
    results: Iterable[FieldResult],
    last_known: Optional[Mapping[str, int]] = None,
    refreshed_at: Optional[datetime] = None
) -> AggregateStats:
    """
    Combine per-field chain results into one statistics view.

    Args:
        results: One result per field in STAT_FIELDS; missing fields count as failed
        last_known: Previously observed values used for failed fields
        refreshed_at: Timestamp of this refresh

    Returns:
        AggregateStats marked Stale when any field fell back
    """
    last_known = last_known or {}
    by_field = {result.field: result for result in results}

    values: Dict[str, int] = {}
    stale_fields = []
    for name in STAT_FIELDS:
        result = by_field.get(name)
        if result is not None and result.ok:
            values[name] = int(result.value)
            continue
        stale_fields.append(name)
        fallback = last_known.get(name)
        values[name] = int(fallback) if fallback is not None else FALLBACK_DEFAULTS[name]

    return AggregateStats(
        total_users=values["total_users"],
        total_lands=values["total_lands"],
        verified_lands=values["verified_lands"],
        pending_lands=pending_lands(values["total_lands"], values["verified_lands"]),
        data_freshness=DataFreshness.STALE if stale_fields else DataFreshness.FRESH,
        stale_fields=stale_fields,
        refreshed_at=refreshed_at or datetime.utcnow(),
    )
