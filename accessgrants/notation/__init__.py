"""Glob notation matching, union and object filtering for attribute lists."""

from accessgrants.notation.glob import (
    Glob,
    filter_all,
    filter_object,
    includes,
    parse_globs,
    union,
)

__all__ = [
    "Glob",
    "filter_all",
    "filter_object",
    "includes",
    "parse_globs",
    "union",
]
