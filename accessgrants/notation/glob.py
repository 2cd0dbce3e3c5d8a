"""Glob notation for object attributes.

A glob names a dotted property path such as ``user.address.city``. Each
segment is either a literal key or ``*``, and a leading ``!`` negates the
glob. A glob matches the path it names and everything nested beneath it.

For any path, the most specific matching glob decides whether the path is
included: longer globs beat shorter ones, literal segments beat wildcards,
and at equal specificity a negation wins. A path no glob matches is
excluded.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from accessgrants.errors import AccessControlError, ErrorKind

WILDCARD = "*"
NEGATION = "!"


@dataclass(frozen=True)
class Glob:
    """A single parsed glob notation."""

    segments: tuple[str, ...]
    negated: bool = False

    @classmethod
    def parse(cls, notation: str) -> Glob:
        """Parse a glob string, raising on malformed input."""
        if not isinstance(notation, str):
            raise AccessControlError(
                f"Invalid glob notation: {notation!r}", ErrorKind.INVALID_ATTRIBUTES
            )
        text = notation.strip()
        negated = text.startswith(NEGATION)
        if negated:
            text = text[1:]
        segments = tuple(text.split("."))
        if not text or any(s == "" for s in segments):
            raise AccessControlError(
                f"Invalid glob notation: {notation!r}", ErrorKind.INVALID_ATTRIBUTES
            )
        return cls(segments=segments, negated=negated)

    def __str__(self) -> str:
        body = ".".join(self.segments)
        return f"{NEGATION}{body}" if self.negated else body

    @property
    def specificity(self) -> tuple[int, int]:
        return (
            len(self.segments),
            sum(1 for s in self.segments if s != WILDCARD),
        )

    def outranks(self, other: Glob) -> bool:
        """Whether this glob takes precedence over ``other`` on shared paths."""
        if self.specificity != other.specificity:
            return self.specificity > other.specificity
        return self.negated and not other.negated

    def matches(self, path: Sequence[str]) -> bool:
        """Whether the glob matches the given path (or one of its parents)."""
        if len(self.segments) > len(path):
            return False
        return all(g == WILDCARD or g == p for g, p in zip(self.segments, path))

    def reaches_below(self, path: Sequence[str]) -> bool:
        """Whether the glob names something strictly nested under ``path``."""
        if len(self.segments) <= len(path):
            return False
        return all(g == WILDCARD or g == p for g, p in zip(self.segments, path))

    def covers(self, other: Glob) -> bool:
        """Whether every path matched by ``other`` is matched by this glob."""
        if len(self.segments) > len(other.segments):
            return False
        return all(g == WILDCARD or g == o for g, o in zip(self.segments, other.segments))

    def intersects(self, other: Glob) -> bool:
        """Whether some path is matched by both globs."""
        return all(
            a == WILDCARD or b == WILDCARD or a == b
            for a, b in zip(self.segments, other.segments)
        )

    def intersection(self, other: Glob) -> Glob:
        """Positive glob matching exactly the paths both globs match."""
        length = max(len(self.segments), len(other.segments))
        segments = []
        for i in range(length):
            a = self.segments[i] if i < len(self.segments) else WILDCARD
            b = other.segments[i] if i < len(other.segments) else WILDCARD
            segments.append(b if a == WILDCARD else a)
        return Glob(segments=tuple(segments))


def parse_globs(attributes: Iterable[str]) -> list[Glob]:
    """Parse a list of glob strings."""
    return [Glob.parse(a) for a in attributes]


def _split_path(path: str | Sequence[str]) -> tuple[str, ...]:
    if isinstance(path, str):
        return tuple(path.split("."))
    return tuple(path)


def _deciding(globs: Iterable[Glob], path: Sequence[str]) -> Glob | None:
    best = None
    for glob in globs:
        if glob.matches(path) and (best is None or glob.outranks(best)):
            best = glob
    return best


def _governing(globs: Iterable[Glob], target: Glob) -> Glob | None:
    """Most specific glob that covers the whole region of ``target``."""
    best = None
    for glob in globs:
        if glob.covers(target) and (best is None or glob.outranks(best)):
            best = glob
    return best


def _is_positive(glob: Glob | None) -> bool:
    return glob is not None and not glob.negated


def includes(attributes: Iterable[str], path: str | Sequence[str]) -> bool:
    """Whether the attribute list includes the given dotted property path."""
    return _is_positive(_deciding(parse_globs(attributes), _split_path(path)))


def _pattern_closure(globs: Iterable[Glob]) -> list[tuple[str, ...]]:
    """Segment patterns of ``globs`` closed under intersection, in first-seen order."""
    patterns: list[tuple[str, ...]] = []
    for glob in globs:
        if glob.segments not in patterns:
            patterns.append(glob.segments)

    # every pair (j < i) is intersected once; new patterns join the queue
    i = 0
    while i < len(patterns):
        current = Glob(patterns[i])
        for j in range(i):
            other = Glob(patterns[j])
            if current.intersects(other):
                segments = current.intersection(other).segments
                if segments not in patterns:
                    patterns.append(segments)
        i += 1
    return patterns


def _decides_positive(globs: list[Glob], segments: tuple[str, ...]) -> bool:
    return _is_positive(_governing(globs, Glob(segments)))


def union(attributes_a: Sequence[str], attributes_b: Sequence[str]) -> list[str]:
    """Union two attribute lists.

    The result includes a path exactly when either list includes it.

    Once the patterns of both lists are closed under intersection, every
    path has a single most specific matching pattern, and both lists decide
    the path the way they decide that pattern. The result therefore holds
    each pattern once, positive when either list includes it, and then
    drops every entry whose removal leaves all of those decisions intact.
    """
    globs_a = parse_globs(attributes_a)
    globs_b = parse_globs(attributes_b)

    patterns = _pattern_closure(globs_a + globs_b)
    expected = {
        segments: _decides_positive(globs_a, segments) or _decides_positive(globs_b, segments)
        for segments in patterns
    }

    result = [Glob(segments, negated=not expected[segments]) for segments in patterns]
    for glob in list(result):
        trial = [g for g in result if g is not glob]
        if all(_decides_positive(trial, s) == included for s, included in expected.items()):
            result = trial
    return [str(g) for g in result]


def _filter_mapping(
    obj: Mapping[str, Any], prefix: tuple[str, ...], globs: list[Glob]
) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in obj.items():
        path = prefix + (str(key),)
        included = _is_positive(_deciding(globs, path))
        if isinstance(value, Mapping) and any(g.reaches_below(path) for g in globs):
            nested = _filter_mapping(value, path, globs)
            if nested or included:
                result[key] = nested
        elif included:
            result[key] = copy.deepcopy(value)
    return result


def filter_object(obj: Mapping[str, Any], attributes: Sequence[str]) -> dict[str, Any]:
    """Deep-copy ``obj`` keeping only the properties the attributes include."""
    if not attributes:
        return {}
    if not isinstance(obj, Mapping):
        raise TypeError(f"Expected a mapping to filter, got {type(obj).__name__}")
    return _filter_mapping(obj, (), parse_globs(attributes))


def filter_all(
    data: Mapping[str, Any] | Sequence[Mapping[str, Any]], attributes: Sequence[str]
) -> dict[str, Any] | list[dict[str, Any]]:
    """Filter a single mapping or each mapping of a list."""
    if isinstance(data, Mapping):
        return filter_object(data, attributes)
    return [filter_object(item, attributes) for item in data]
