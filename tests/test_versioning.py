"""Tests for version parsing, snapshot matching and candidate selection."""

import pytest

from common.errors import InvalidVersionFormat
from versioning.negotiator import matches, prefer_candidate, select_best
from versioning.parser import parse_minimum_version, parse_version, try_parse_version


def v(text):
    return parse_version(text)


class TestParseVersion:
    """Test parsing of plain and floating versions."""

    @pytest.mark.parametrize(
        "text", ["1.0", "1.0.0", "2.10.3", "1.0.0.0", "4.0.30319.1", "1.0.0-beta", "1.0.0-rc.2", "3.1.4-alpha-1", "1.0-beta"]
    )
    def test_round_trips(self, text):
        """Plain versions print back exactly as parsed."""
        assert str(parse_version(text)) == text

    def test_leading_zeros_are_insignificant(self):
        """Leading zeros are dropped when the version is printed."""
        version = parse_version("01.2.03")

        assert str(version) == "1.2.3"
        assert version == parse_version("1.2.3")
        assert version.original == "01.2.03"

    def test_short_and_four_part_forms(self):
        """Two parts mean a zero patch; a fourth part is the revision."""
        short = parse_version("1.0")
        long = parse_version("4.0.30319.1")

        assert short.triple == (1, 0, 0)
        assert short == parse_version("1.0.0")
        assert long.numbers == (4, 0, 30319, 1)
        assert long.revision == 1

    def test_floating_suffix_is_stripped(self):
        """The -* marker sets the snapshot flag and is not part of the label."""
        version = parse_version("1.0.0-beta-*")

        assert version.is_snapshot is True
        assert version.triple == (1, 0, 0)
        assert version.label == "beta"
        assert version.original == "1.0.0-beta-*"

    def test_bare_floating_suffix(self):
        """1.0.0-* floats over every label."""
        version = parse_version("1.0.0-*")

        assert version.is_snapshot is True
        assert version.label == ""

    @pytest.mark.parametrize("text", ["", "abc", "1", "1.0.0.0.0", "1.0.0.0.x", "1.0.0-", "-*"])
    def test_invalid_text_raises(self, text):
        """Malformed text fails fast with InvalidVersionFormat."""
        with pytest.raises(InvalidVersionFormat):
            parse_version(text)

    def test_invalid_version_is_value_error(self):
        """Callers catching ValueError also catch version errors."""
        with pytest.raises(ValueError):
            parse_version("not-a-version")

    def test_try_parse_returns_none(self):
        """try_parse_version never raises."""
        assert try_parse_version("garbage") is None
        assert try_parse_version(None) is None
        assert str(try_parse_version("1.2.3")) == "1.2.3"


class TestSemanticVersion:
    """Test equality, ordering and snapshot specification."""

    def test_labels_compare_case_insensitively(self):
        """Beta and beta are the same label."""
        assert v("1.0.0-Beta") == v("1.0.0-beta")
        assert hash(v("1.0.0-Beta")) == hash(v("1.0.0-beta"))

    def test_prerelease_sorts_before_release(self):
        """A labelled version precedes the release with the same triple."""
        assert v("1.0.0-beta") < v("1.0.0")
        assert v("1.0.0-beta.2") < v("1.0.0-beta.10")
        assert v("2.0.0") > v("1.9.9")

    def test_revision_orders_after_patch(self):
        """The fourth part breaks ties between equal triples."""
        assert v("4.0.30319.1") > v("4.0.30319")
        assert v("1.0.0.1-beta") > v("1.0.0")
        assert v("1.0.0.1-beta") < v("1.0.0.1")

    def test_specify_snapshot_keeps_short_form(self):
        """A two-part floating version stays two-part once concrete."""
        assert str(v("1.0-*").specify_snapshot("rc1")) == "1.0-rc1"

    def test_specify_snapshot_fills_label(self):
        """A floating version becomes concrete with the given value."""
        concrete = v("1.0.0-*").specify_snapshot("beta-12")

        assert str(concrete) == "1.0.0-beta-12"
        assert concrete.is_snapshot is False

    def test_specify_snapshot_appends_to_existing_label(self):
        """The value is appended after the declared label."""
        assert str(v("1.0.0-beta-*").specify_snapshot("12")) == "1.0.0-beta-12"

    def test_specify_snapshot_without_value_drops_marker(self):
        """An empty value just removes the marker."""
        assert str(v("1.0.0-beta-*").specify_snapshot("")) == "1.0.0-beta"

    def test_specify_snapshot_on_plain_version_is_identity(self):
        """Non-floating versions are returned unchanged."""
        version = v("1.2.3")
        assert version.specify_snapshot("x") is version


class TestMatches:
    """Test constraint matching."""

    def test_snapshot_matches_label_prefix(self):
        """Same triple and a label starting with the constraint label."""
        constraint = v("1.0.0-beta-*")

        assert matches(v("1.0.0-beta-3"), constraint)
        assert matches(v("1.0.0-BETA2"), constraint)
        assert matches(v("1.0.0-beta"), constraint)

    def test_snapshot_compares_revision(self):
        """A four-part floating constraint needs the same revision."""
        assert matches(v("1.0.0.2-beta-1"), v("1.0.0.2-beta-*"))
        assert not matches(v("1.0.0.3-beta-1"), v("1.0.0.2-beta-*"))

    def test_snapshot_rejects_other_triple_or_label(self):
        """A different triple or label never matches."""
        constraint = v("1.0.0-beta-*")

        assert not matches(v("1.0.1-beta"), constraint)
        assert not matches(v("1.0.0-alpha"), constraint)
        assert not matches(v("1.0.0"), constraint)

    def test_bare_snapshot_matches_release(self):
        """1.0.0-* accepts every 1.0.0 version including the release."""
        assert matches(v("1.0.0"), v("1.0.0-*"))
        assert matches(v("1.0.0-rc1"), v("1.0.0-*"))

    def test_plain_constraint_requires_equality(self):
        """Without a marker the whole version including the label must match."""
        assert matches(v("1.0.0"), v("1.0.0"))
        assert not matches(v("1.0.0-beta"), v("1.0.0"))
        assert not matches(v("1.0.1"), v("1.0.0"))


class TestPreferCandidate:
    """Test the asymmetric selection policy."""

    def test_first_acceptable_candidate_wins(self):
        """With no current pick any acceptable candidate is taken."""
        assert prefer_candidate(None, v("1.0.0"), v("1.0.0"))
        assert prefer_candidate(None, v("2.0.0"), v("1.0.0"))

    def test_rejects_lower_than_ideal(self):
        """A non-matching candidate below the ideal is never taken."""
        assert not prefer_candidate(None, v("0.9.0"), v("1.0.0"))
        assert not prefer_candidate(v("1.5.0"), v("0.9.0"), v("1.0.0"))

    def test_newest_snapshot_match_wins(self):
        """Among snapshot matches the higher version is preferred."""
        ideal = v("1.0.0-beta-*")

        assert prefer_candidate(v("1.0.0-beta-1"), v("1.0.0-beta-2"), ideal)
        assert not prefer_candidate(v("1.0.0-beta-2"), v("1.0.0-beta-1"), ideal)

    def test_lowest_plain_candidate_wins(self):
        """Among plain candidates the lower version is preferred."""
        ideal = v("1.0.0")

        assert prefer_candidate(v("2.0.0"), v("1.5.0"), ideal)
        assert not prefer_candidate(v("1.5.0"), v("2.0.0"), ideal)

    def test_select_best_plain(self):
        """The lowest version at or above the ideal is selected."""
        candidates = [v("1.0.0"), v("2.0.0"), v("1.2.0")]

        assert select_best(candidates, v("1.1.0")) == v("1.2.0")

    def test_select_best_snapshot(self):
        """The newest snapshot match is selected and kept over a release."""
        candidates = [v("1.0.0-beta-1"), v("1.0.0-beta-3"), v("1.0.0-beta-2"), v("1.0.0")]

        assert select_best(candidates, v("1.0.0-beta-*")) == v("1.0.0-beta-3")

    def test_select_best_with_key(self):
        """Arbitrary items can be ranked through a key function."""
        items = [("a", v("1.0.0")), ("b", v("1.1.0"))]

        assert select_best(items, v("1.1.0"), key=lambda item: item[1]) == ("b", v("1.1.0"))

    def test_select_best_none_acceptable(self):
        """Nothing at or above the ideal yields None."""
        assert select_best([v("0.1.0")], v("1.0.0")) is None


class TestParseMinimumVersion:
    """Test reading the lower bound of declared dependency versions."""

    @pytest.mark.parametrize(
        "spec, expected",
        [
            ("1.0.0", "1.0.0"),
            ("[1.0.0, 2.0.0)", "1.0.0"),
            ("[2.0, 3.0)", "2.0.0"),
            ("1", "1.0.0"),
            ("1.2", "1.2.0"),
            ("1.2-beta", "1.2.0-beta"),
        ],
    )
    def test_lower_bound(self, spec, expected):
        """Intervals use their lower bound and short forms are padded."""
        assert str(parse_minimum_version(spec)) == expected

    def test_floating_spec(self):
        """A floating spec keeps its snapshot flag."""
        version = parse_minimum_version("1.0-*")

        assert version.is_snapshot is True
        assert version.triple == (1, 0, 0)

    @pytest.mark.parametrize("spec", [None, "", "(, 2.0)"])
    def test_no_lower_bound(self, spec):
        """Empty specs and open lower bounds give None."""
        assert parse_minimum_version(spec) is None

    def test_invalid_spec_raises(self):
        """An unparseable lower bound is an error."""
        with pytest.raises(InvalidVersionFormat):
            parse_minimum_version("abc")
