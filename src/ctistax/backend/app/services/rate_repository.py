"""Effective-dated rate table lookup over immutable snapshots."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from functools import lru_cache
from threading import Lock
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Sequence

from ctistax.backend.app.errors import AmbiguousRate, RateNotFound
from ctistax.backend.config.rate_tables import load_rate_tables
from ctistax.backend.config.schema import RateTable, TaxpayerCategory, TaxType

_LOGGER = logging.getLogger(__name__)

_ScopeKey = tuple[TaxType, int]


def resolve_rate_table(
    tables: Iterable[RateTable],
    tax_type: TaxType,
    category: TaxpayerCategory | None,
    tax_year: int,
    as_of: date,
) -> RateTable:
    """Return the single rate table applicable to the lookup.

    A table matches when it covers ``tax_type`` and ``tax_year``, is effective
    on ``as_of`` and is either category-specific for ``category`` or generic.
    Category-specific tables win over generic ones; among those the most
    recent ``effective_from`` wins. Anything still tied is ambiguous.
    """

    candidates = [
        table
        for table in tables
        if table.tax_type is tax_type
        and table.tax_year == tax_year
        and table.applies_to(category)
        and table.is_effective(as_of)
    ]
    if not candidates:
        raise RateNotFound(tax_type, category, tax_year, as_of)

    specific = [table for table in candidates if table.category is not None]
    if category is not None and specific:
        candidates = specific

    latest = max(table.effective_from for table in candidates)
    winners = [table for table in candidates if table.effective_from == latest]
    if len(winners) > 1:
        _LOGGER.error(
            "Ambiguous rate tables for %s/%s/%s as of %s: %d candidates effective from %s",
            tax_type.value,
            category.value if category else "*",
            tax_year,
            as_of.isoformat(),
            len(winners),
            latest.isoformat(),
        )
        raise AmbiguousRate(tax_type, category, tax_year, as_of, len(winners))

    return winners[0]


@dataclass(frozen=True)
class RateSnapshot:
    """Immutable, indexed set of rate tables loaded at a point in time."""

    tables: tuple[RateTable, ...]
    loaded_at: datetime
    version: int = 1
    _index: Mapping[_ScopeKey, tuple[RateTable, ...]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        grouped: dict[_ScopeKey, list[RateTable]] = defaultdict(list)
        for table in self.tables:
            grouped[(table.tax_type, table.tax_year)].append(table)
        index = {
            key: tuple(sorted(members, key=lambda table: table.effective_from))
            for key, members in grouped.items()
        }
        object.__setattr__(self, "_index", MappingProxyType(index))

    def tables_for(self, tax_type: TaxType, tax_year: int) -> tuple[RateTable, ...]:
        return self._index.get((tax_type, tax_year), ())

    @property
    def tax_years(self) -> tuple[int, ...]:
        return tuple(sorted({year for _, year in self._index}))

    def resolve(
        self,
        tax_type: TaxType,
        category: TaxpayerCategory | None,
        tax_year: int,
        as_of: date,
    ) -> RateTable:
        return resolve_rate_table(
            self.tables_for(tax_type, tax_year), tax_type, category, tax_year, as_of
        )


class RateRepository:
    """Read-mostly holder of the current :class:`RateSnapshot`.

    Readers take a reference to the current snapshot without locking; writers
    build a fresh snapshot and swap the reference under a lock, so lookups that
    are already running finish against the snapshot they started with.
    """

    def __init__(
        self,
        tables: Iterable[RateTable] = (),
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = Lock()
        self._snapshot = RateSnapshot(tuple(tables), self._clock())

    @classmethod
    def from_config(
        cls,
        years: Sequence[int] | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> RateRepository:
        """Build a repository from the packaged YAML rate tables."""

        tables = load_rate_tables(years)
        _LOGGER.debug("Loaded %d rate tables from configuration", len(tables))
        return cls(tables, clock=clock)

    @property
    def snapshot(self) -> RateSnapshot:
        return self._snapshot

    def resolve(
        self,
        tax_type: TaxType,
        category: TaxpayerCategory | None,
        tax_year: int,
        as_of: date,
    ) -> RateTable:
        """Resolve a rate table against the current snapshot."""

        table = self._snapshot.resolve(tax_type, category, tax_year, as_of)
        _LOGGER.debug(
            "Resolved %s as of %s to table effective from %s",
            table.scope,
            as_of.isoformat(),
            table.effective_from.isoformat(),
        )
        return table

    def replace(self, tables: Iterable[RateTable]) -> RateSnapshot:
        """Atomically swap in a new snapshot built from ``tables``."""

        materialised = tuple(tables)
        with self._lock:
            snapshot = RateSnapshot(
                materialised, self._clock(), version=self._snapshot.version + 1
            )
            self._snapshot = snapshot
        _LOGGER.debug(
            "Rate snapshot replaced (version %d, %d tables)",
            snapshot.version,
            len(materialised),
        )
        return snapshot


@lru_cache(maxsize=1)
def default_repository() -> RateRepository:
    """Return the process-wide repository backed by the packaged rate tables."""

    return RateRepository.from_config()


__all__ = [
    "RateRepository",
    "RateSnapshot",
    "default_repository",
    "resolve_rate_table",
]
