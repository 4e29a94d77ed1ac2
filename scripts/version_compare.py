#!/usr/bin/env python3
"""
Extension Version Comparison
Orders add-on version strings such as "1.0.10", "2.0b3" or "1.0a".

Versions are split into alternating numeric and non-numeric runs which are
compared position by position: numeric runs as integers, other runs lexically.
A version that runs out of runs first is the lower one, so "1.0" < "1.0.0".
When the runs at one position are of different kinds the remainders of both
strings are compared lexically.
"""

import re
from functools import cmp_to_key
from typing import Any, List, Optional

_RUN_RE = re.compile(r'\d+|\D+', re.ASCII)
_DIGITS = frozenset('0123456789')


def split_runs(version: Optional[Any]) -> List[str]:
    """Split a version string into its numeric and non-numeric runs."""
    return _RUN_RE.findall(str(version) if version is not None else '')


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def _lexical(a: str, b: str) -> int:
    return (a > b) - (a < b)


def compare(a: Optional[Any], b: Optional[Any]) -> int:
    """
    Compare two version strings

    Args:
        a: First version
        b: Second version

    Returns:
        Negative if a < b, zero if equal, positive if a > b
    """
    runs_a = split_runs(a)
    runs_b = split_runs(b)

    for index in range(min(len(runs_a), len(runs_b))):
        run_a, run_b = runs_a[index], runs_b[index]
        numeric_a, numeric_b = run_a[0] in _DIGITS, run_b[0] in _DIGITS

        if numeric_a and numeric_b:
            result = _sign(int(run_a) - int(run_b))
        elif not numeric_a and not numeric_b:
            result = _lexical(run_a, run_b)
        else:
            # Mismatched run kinds: fall back to the raw remainders
            return _lexical(''.join(runs_a[index:]), ''.join(runs_b[index:]))

        if result:
            return result

    return _sign(len(runs_a) - len(runs_b))


version_key = cmp_to_key(compare)
