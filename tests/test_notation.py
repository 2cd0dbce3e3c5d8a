"""Tests for glob notation matching, union and filtering."""

import itertools
import random

import pytest

from accessgrants.errors import AccessControlError, ErrorKind
from accessgrants.notation import Glob, filter_all, filter_object, includes, union

GLOB_SEGMENTS = ("a", "b", "*")

# "c" only ever matches through a wildcard
PATHS = [
    ".".join(p) for n in (1, 2, 3) for p in itertools.product("abc", repeat=n)
]


def random_globs(rng: random.Random) -> list[str]:
    """Up to three short globs, some negated."""
    globs = []
    for _ in range(rng.randint(0, 3)):
        segments = [rng.choice(GLOB_SEGMENTS) for _ in range(rng.randint(1, 2))]
        prefix = "!" if rng.random() < 0.4 else ""
        globs.append(prefix + ".".join(segments))
    return globs


@pytest.fixture
def record():
    """A record with nested and secret fields."""
    return {
        "id": 1,
        "name": "a",
        "secret": "x",
        "user": {"name": "n", "password": "p", "tags": ["t1", "t2"]},
    }


class TestGlobParsing:
    """Test parsing glob strings."""

    def test_parse_negated_nested(self):
        """Negation and segments are parsed."""
        glob = Glob.parse("!user.*.secret")
        assert glob.negated is True
        assert glob.segments == ("user", "*", "secret")
        assert str(glob) == "!user.*.secret"

    @pytest.mark.parametrize("notation", ["", "!", "a..b", ".a", 5])
    def test_invalid_notation_raises(self, notation):
        """Malformed globs are rejected."""
        with pytest.raises(AccessControlError) as exc:
            Glob.parse(notation)
        assert exc.value.kind == ErrorKind.INVALID_ATTRIBUTES

    def test_more_specific_glob_outranks(self):
        """Longer and more literal globs take precedence."""
        assert Glob.parse("user.name").outranks(Glob.parse("!user"))
        assert Glob.parse("name").outranks(Glob.parse("*"))
        assert Glob.parse("!name").outranks(Glob.parse("name"))


class TestIncludes:
    """Test path inclusion decisions."""

    def test_wildcard_includes_everything(self):
        """A bare wildcard includes top level and nested paths."""
        assert includes(["*"], "id")
        assert includes(["*"], "user.password")

    def test_negation_excludes(self):
        """A negated glob excludes its path and children."""
        assert not includes(["*", "!user"], "user.name")
        assert includes(["*", "!user"], "id")

    def test_specific_positive_overrides_negation(self):
        """A more specific positive glob re-includes a path."""
        assert includes(["*", "!user", "user.name"], "user.name")
        assert not includes(["*", "!user", "user.name"], "user.password")

    def test_equal_specificity_negation_wins(self):
        """At equal specificity, negation wins."""
        assert not includes(["name", "!name"], "name")

    def test_empty_list_includes_nothing(self):
        """No globs means no paths."""
        assert not includes([], "id")


class TestUnion:
    """Test glob-aware union of attribute lists."""

    def test_union_recombines_excluded_attribute(self):
        """One side's negation is undone by the other side's grant."""
        assert union(["*", "!secret"], ["secret"]) == ["*"]

    def test_union_keeps_negation_not_covered(self):
        """A negation survives when the other side does not cover it."""
        assert union(["*", "!secret"], ["title"]) == ["*", "!secret"]

    def test_union_of_disjoint_negations(self):
        """Each side includes what the other excludes."""
        assert union(["*", "!a"], ["*", "!b"]) == ["*"]

    def test_union_of_literals(self):
        """Literal globs from both sides are kept."""
        result = union(["user.name"], ["user.email"])
        assert includes(result, "user.name")
        assert includes(result, "user.email")
        assert not includes(result, "user.password")

    def test_union_partial_overlap_with_negation(self):
        """A nested grant inside a negated region stays included."""
        result = union(["*", "!user"], ["user.name"])
        assert includes(result, "user.name")
        assert includes(result, "id")
        assert not includes(result, "user.password")

    def test_union_with_wildcard_intersection(self):
        """A wildcard grant that partially overlaps a negation is honored."""
        result = union(["*", "!user.*.secret"], ["*.name"])
        assert includes(result, "user.name.secret")
        assert not includes(result, "user.other.secret")
        assert includes(result, "id")

    def test_union_with_empty_side(self):
        """Union with an empty list keeps the other side's meaning."""
        result = union([], ["*", "!secret"])
        assert includes(result, "id")
        assert not includes(result, "secret")

    def test_union_of_empty_lists(self):
        """Two empty lists union to an empty list."""
        assert union([], []) == []

    def test_union_keeps_overlap_excluded_by_both(self):
        """A path both sides exclude through different negations stays excluded."""
        result = union(["*", "!profile.*"], ["*", "!*.ssn"])
        assert not includes(result, "profile.ssn")
        assert includes(result, "profile.email")
        assert includes(result, "account.ssn")
        assert includes(result, "profile")

    def test_union_of_mixed_negations(self):
        """Negations on both sides do not leak their overlap."""
        a = ["!b.*", "!a.a", "*.b"]
        b = ["b", "!*.b"]
        result = union(a, b)
        assert not includes(result, "b.b")
        assert includes(result, "a.b")
        assert includes(result, "b.a")

    @pytest.mark.parametrize("seed", range(5))
    def test_union_includes_exactly_what_either_side_includes(self, seed):
        """Randomized lists: union includes a path iff one side includes it."""
        rng = random.Random(seed)
        for _ in range(200):
            a, b = random_globs(rng), random_globs(rng)
            result = union(a, b)
            for path in PATHS:
                expected = includes(a, path) or includes(b, path)
                assert includes(result, path) == expected, (a, b, result, path)


class TestFilter:
    """Test projecting objects by attribute globs."""

    def test_filter_removes_negated_attribute(self):
        """Negated top-level attributes are dropped."""
        result = filter_object({"id": 1, "name": "a", "secret": "x"}, ["*", "!secret"])
        assert result == {"id": 1, "name": "a"}

    def test_filter_with_no_attributes(self, record):
        """An empty attribute list yields an empty object."""
        assert filter_object(record, []) == {}

    def test_filter_nested_negation(self, record):
        """Nested negations drop only the nested property."""
        result = filter_object(record, ["*", "!user.password", "!secret"])
        assert result == {
            "id": 1,
            "name": "a",
            "user": {"name": "n", "tags": ["t1", "t2"]},
        }

    def test_filter_nested_literal(self, record):
        """A nested literal keeps only its branch."""
        assert filter_object(record, ["user.name"]) == {"user": {"name": "n"}}

    def test_filter_wildcard_segment(self):
        """A wildcard segment matches every key at that level."""
        data = {"a": {"name": 1, "x": 2}, "b": {"name": 3}, "c": 4}
        assert filter_object(data, ["*.name"]) == {"a": {"name": 1}, "b": {"name": 3}}

    def test_filter_deep_copies(self, record):
        """The result does not share mutable values with the source."""
        result = filter_object(record, ["*"])
        result["user"]["tags"].append("t3")
        assert record["user"]["tags"] == ["t1", "t2"]

    def test_filter_all_list(self):
        """Each object of a list is filtered."""
        data = [{"id": 1, "secret": "x"}, {"id": 2, "secret": "y"}]
        assert filter_all(data, ["*", "!secret"]) == [{"id": 1}, {"id": 2}]

    def test_filter_all_single_object(self):
        """A single mapping is filtered directly."""
        assert filter_all({"id": 1, "secret": "x"}, ["id"]) == {"id": 1}

    def test_filter_rejects_non_mapping(self):
        """Only mappings can be filtered."""
        with pytest.raises(TypeError):
            filter_object("not a mapping", ["*"])
