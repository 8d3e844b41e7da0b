"""Parsers for checker output. None of them raise on malformed input."""

from .diagnostics import failure_diagnostic, parse_compiler_output, parse_eslint_json
from .test_output import TestCounts, parse_test_output

__all__ = [
    "TestCounts",
    "failure_diagnostic",
    "parse_compiler_output",
    "parse_eslint_json",
    "parse_test_output",
]
