"""Utilities for validating rate table data and surfacing issues."""

from __future__ import annotations

import argparse
from collections import Counter, defaultdict
from typing import Sequence

from .rate_tables import available_years, load_year_tables
from .schema import ConfigurationError, RateTable, TaxType


def _format_scope(scope: str, message: str) -> str:
    return f"{scope}: {message}"


def _validate_excise(table: RateTable) -> list[str]:
    errors: list[str] = []
    scope = table.scope

    names = Counter(category.name.lower() for category in table.excise_categories)
    for name, count in names.items():
        if count > 1:
            errors.append(_format_scope(scope, f"duplicate excise category '{name}'"))

    prefixes = Counter(
        category.code_prefix
        for category in table.excise_categories
        if category.code_prefix is not None
    )
    for prefix, count in prefixes.items():
        if count > 1:
            errors.append(_format_scope(scope, f"duplicate excise code prefix '{prefix}'"))

    codes = Counter(
        product.product_code
        for category in table.excise_categories
        for product in category.products
    )
    for code, count in codes.items():
        if count > 1:
            errors.append(_format_scope(scope, f"duplicate excise product code '{code}'"))

    for category in table.excise_categories:
        if category.charges_specific and not category.products:
            errors.append(
                _format_scope(
                    scope,
                    f"category '{category.name}' charges specific duty but lists no products",
                )
            )

    return errors


def validate_rate_table(table: RateTable) -> list[str]:
    """Return issues in a single rate table that its field validators cannot see.

    Bracket ordering and rate ranges are enforced when the table is loaded;
    what remains are duplicate excise categories, prefixes and product codes,
    and specific-duty categories with nothing to charge.
    """

    if table.tax_type is not TaxType.EXCISE:
        return []
    return _validate_excise(table)


def validate_rate_tables(tables: Sequence[RateTable]) -> list[str]:
    """Validate each table and report ambiguous effective windows across them."""

    errors: list[str] = []
    groups: dict[str, list[RateTable]] = defaultdict(list)

    for table in tables:
        errors.extend(validate_rate_table(table))
        groups[table.scope].append(table)

    for scope, members in groups.items():
        for index, first in enumerate(members):
            for second in members[index + 1 :]:
                if first.effective_from == second.effective_from:
                    errors.append(
                        _format_scope(
                            scope,
                            (
                                "ambiguous effective window: two tables take effect on "
                                f"{first.effective_from.isoformat()}"
                            ),
                        )
                    )

    return errors


def validate_all_years(years: Sequence[int] | None = None) -> dict[int, list[str]]:
    """Validate all configured years and return issues keyed by year."""

    targets = years or available_years()
    results: dict[int, list[str]] = {}

    for year in targets:
        tables = load_year_tables(int(year))
        results[int(year)] = validate_rate_tables(tables)

    return results


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate packaged rate tables and report issues helpful to contributors."
    )
    parser.add_argument(
        "years",
        nargs="*",
        type=int,
        help="Specific years to validate (defaults to all configured years)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running validations from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    years = args.years or available_years()

    if not years:
        parser.print_help()
        return 1

    exit_code = 0

    for year in years:
        try:
            tables = load_year_tables(year)
        except (FileNotFoundError, ConfigurationError) as error:
            print(f"[{year}] failed to load rate tables: {error}")
            exit_code = 1
            continue

        issues = validate_rate_tables(tables)
        if issues:
            exit_code = 1
            print(f"[{year}] {len(issues)} issue(s) detected:")
            for issue in issues:
                print(f"  - {issue}")
        else:
            print(f"[{year}] OK ({len(tables)} tables)")

    return exit_code


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
