"""Unit coverage for rate table discovery and parsing."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from shutil import copy2
from typing import Any

import pytest
import yaml

from ctistax.backend.config import rate_tables
from ctistax.backend.config.schema import ConfigurationError, TaxpayerCategory, TaxType


@pytest.fixture()
def isolated_config_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Return a temporary configuration directory patched into ``rate_tables``."""

    original_directory = rate_tables.CONFIG_DIRECTORY
    for filename in ("2024.yaml", "2025.yaml", "manifest.yaml"):
        copy2(original_directory / filename, tmp_path / filename)

    monkeypatch.setattr(rate_tables, "CONFIG_DIRECTORY", tmp_path)
    monkeypatch.setattr(rate_tables, "MANIFEST_FILE", tmp_path / "manifest.yaml")
    rate_tables.load_year_tables.cache_clear()
    rate_tables.load_manifest.cache_clear()

    yield tmp_path

    rate_tables.load_year_tables.cache_clear()
    rate_tables.load_manifest.cache_clear()


def _declare_year(directory: Path, year: int, contents: dict[str, Any]) -> None:
    (directory / f"{year}.yaml").write_text(yaml.safe_dump(contents, sort_keys=False))
    manifest_path = directory / "manifest.yaml"
    manifest = yaml.safe_load(manifest_path.read_text())
    manifest["files"].append({"year": year})
    manifest_path.write_text(yaml.safe_dump(manifest, sort_keys=False))
    rate_tables.load_manifest.cache_clear()


def _gst_record(**overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "tax_type": "gst",
        "effective_from": "2030-01-01",
        "gst_rate": "0.15",
        "penalties": {"late_filing_rate": "0.10", "daily_interest_rate": "0.001"},
    }
    record.update(overrides)
    return record


def test_packaged_years_are_declared() -> None:
    assert tuple(rate_tables.available_years()) == (2024, 2025)
    assert [entry.resolved_filename for entry in rate_tables.manifest_entries()] == [
        "2024.yaml",
        "2025.yaml",
    ]


def test_packaged_2025_tables_cover_every_tax_type() -> None:
    tables = rate_tables.load_year_tables(2025)

    assert {table.tax_type for table in tables} == set(TaxType)
    assert all(table.tax_year == 2025 for table in tables)
    income_categories = {
        table.category for table in tables if table.tax_type is TaxType.INCOME
    }
    assert income_categories == set(TaxpayerCategory)


def test_penalty_profiles_are_shared_through_anchors() -> None:
    tables = rate_tables.load_year_tables(2025)
    gst = next(table for table in tables if table.tax_type is TaxType.GST)

    assert gst.penalties.monthly_compounding is True
    assert gst.penalties.monthly_interest_rate == Decimal("0.03")
    assert gst.penalties.legal_reference == "Finance Act 2020, Section 142"


def test_load_rate_tables_combines_requested_years() -> None:
    combined = rate_tables.load_rate_tables([2024, 2025])

    assert len(combined) == len(rate_tables.load_year_tables(2024)) + len(
        rate_tables.load_year_tables(2025)
    )
    assert {table.tax_year for table in combined} == {2024, 2025}


def test_compliance_policy_defaults() -> None:
    policy = rate_tables.load_compliance_policy()

    assert policy.weights.total == Decimal("1.0")
    assert [band.grade for band in policy.grade_bands] == ["A", "B", "C", "D", "F"]
    assert policy.severity_bands[-1].below_days is None


def test_new_year_is_discovered_from_the_manifest(isolated_config_directory: Path) -> None:
    _declare_year(isolated_config_directory, 2030, {"tables": [_gst_record()]})

    assert tuple(rate_tables.available_years()) == (2024, 2025, 2030)
    (table,) = rate_tables.load_year_tables(2030)
    assert table.tax_year == 2030
    assert table.gst_rate == Decimal("0.15")


def test_undeclared_year_is_not_found(isolated_config_directory: Path) -> None:
    with pytest.raises(FileNotFoundError, match="not declared in manifest"):
        rate_tables.load_year_tables(2031)


def test_declared_year_without_file_is_not_found(isolated_config_directory: Path) -> None:
    _declare_year(isolated_config_directory, 2030, {"tables": []})
    (isolated_config_directory / "2030.yaml").unlink()

    with pytest.raises(FileNotFoundError, match="2030.yaml"):
        rate_tables.load_year_tables(2030)


def test_table_year_must_match_its_file(isolated_config_directory: Path) -> None:
    _declare_year(isolated_config_directory, 2030, {"tables": [_gst_record(tax_year=2031)]})

    with pytest.raises(ConfigurationError, match="year mismatch"):
        rate_tables.load_year_tables(2030)


def test_invalid_table_is_reported_with_its_year(isolated_config_directory: Path) -> None:
    record = _gst_record()
    del record["gst_rate"]
    _declare_year(isolated_config_directory, 2030, {"tables": [record]})

    with pytest.raises(ConfigurationError, match="Rate table validation failed for 2030"):
        rate_tables.load_year_tables(2030)


def test_unknown_keys_are_rejected(isolated_config_directory: Path) -> None:
    _declare_year(
        isolated_config_directory, 2030, {"tables": [_gst_record(vat_rate="0.2")]}
    )

    with pytest.raises(ConfigurationError):
        rate_tables.load_year_tables(2030)


def test_duplicate_manifest_years_are_rejected(isolated_config_directory: Path) -> None:
    manifest_path = isolated_config_directory / "manifest.yaml"
    manifest_path.write_text("files:\n  - year: 2025\n  - year: 2025\n")
    rate_tables.load_manifest.cache_clear()

    with pytest.raises(ConfigurationError, match="Duplicate year 2025"):
        rate_tables.load_manifest()
