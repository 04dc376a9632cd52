"""Cached loaders for the packaged rate tables and compliance policy."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Sequence

import yaml
from pydantic import ValidationError

from .schema import (
    CompliancePolicy,
    ConfigurationError,
    RateManifest,
    RateManifestEntry,
    RateTable,
    RateTableFile,
)

CONFIG_DIRECTORY = Path(__file__).resolve().parent / "data"
MANIFEST_FILE = CONFIG_DIRECTORY / "manifest.yaml"
POLICY_FILE = CONFIG_DIRECTORY / "compliance_policy.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration file must define a mapping at the top level")
    return data


@lru_cache(maxsize=1)
def load_manifest() -> RateManifest:
    """Load and cache the rate table manifest."""

    if not MANIFEST_FILE.exists():
        raise FileNotFoundError("Rate table manifest not found")

    raw_manifest = _load_yaml(MANIFEST_FILE)

    try:
        return RateManifest.model_validate(raw_manifest)
    except ValidationError as error:
        raise ConfigurationError(f"Manifest validation failed: {error}") from error


def manifest_entries() -> Sequence[RateManifestEntry]:
    """Expose the configured manifest entries."""

    return load_manifest().files


@lru_cache(maxsize=8)
def load_year_tables(year: int) -> tuple[RateTable, ...]:
    """Load the rate tables declared for ``year`` from disk."""

    try:
        manifest_entry = load_manifest().get_entry(year)
    except KeyError as exc:
        raise FileNotFoundError(f"Rate tables for year {year} not declared in manifest") from exc

    config_file = CONFIG_DIRECTORY / manifest_entry.resolved_filename
    if not config_file.exists():
        raise FileNotFoundError(f"Rate table file for year {year} missing: {config_file.name}")

    raw_config = _load_yaml(config_file)
    for record in raw_config.get("tables") or ():
        if isinstance(record, dict):
            record.setdefault("tax_year", year)

    try:
        contents = RateTableFile.model_validate(raw_config)
    except ValidationError as error:
        raise ConfigurationError(f"Rate table validation failed for {year}: {error}") from error

    for table in contents.tables:
        if table.tax_year != year:
            raise ConfigurationError(
                f"Rate table year mismatch in {config_file.name}: "
                f"expected {year}, found {table.tax_year}"
            )

    return tuple(contents.tables)


def load_rate_tables(years: Sequence[int] | None = None) -> tuple[RateTable, ...]:
    """Return every rate table for ``years`` (defaults to all manifest years)."""

    targets = years or available_years()
    tables: list[RateTable] = []
    for year in targets:
        tables.extend(load_year_tables(int(year)))
    return tuple(tables)


def available_years() -> Sequence[int]:
    """Return the tax years declared in the manifest."""

    return load_manifest().supported_years


@lru_cache(maxsize=1)
def load_compliance_policy() -> CompliancePolicy:
    """Load the packaged default compliance scoring policy."""

    if not POLICY_FILE.exists():
        raise FileNotFoundError("Compliance policy file not found")

    try:
        return CompliancePolicy.model_validate(_load_yaml(POLICY_FILE))
    except ValidationError as error:
        raise ConfigurationError(f"Compliance policy validation failed: {error}") from error


__all__ = [
    "CONFIG_DIRECTORY",
    "MANIFEST_FILE",
    "POLICY_FILE",
    "available_years",
    "load_compliance_policy",
    "load_manifest",
    "load_rate_tables",
    "load_year_tables",
    "manifest_entries",
]
