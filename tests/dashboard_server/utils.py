"""Utility functions for dashboard query builder tests."""

import re

import sqlparse

PLACEHOLDER_RE = re.compile(r"\{(\w+):([^{}]+)\}")


def normalize_sql(query: str) -> str:
    return " ".join(sqlparse.format(query, strip_whitespace=True).split())


def assert_sql(
    expected_query: str, expected_params: dict, query: str, params: dict
) -> None:
    expected_formatted = normalize_sql(expected_query)
    found_formatted = normalize_sql(query)

    assert expected_formatted == found_formatted, (
        f"\nExpected:\n{expected_formatted}\n\nGot:\n{found_formatted}"
    )
    assert expected_params == params, (
        f"\nExpected params: {expected_params}\n\nGot params: {params}"
    )


def placeholder_names(query: str) -> list[str]:
    return [m.group(1) for m in PLACEHOLDER_RE.finditer(query)]


def assert_params_bound(query: str, params: dict) -> None:
    """Every placeholder is bound, every param is used, each exactly once."""
    names = placeholder_names(query)
    assert sorted(names) == sorted(params), (
        f"\nPlaceholders: {names}\nParams: {sorted(params)}"
    )
    assert len(names) == len(set(names)), f"Duplicate placeholders: {names}"
