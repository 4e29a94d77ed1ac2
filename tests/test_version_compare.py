from itertools import permutations

from version_compare import compare, split_runs, version_key


VERSIONS = ["1.0", "1.0.0", "1.0.1", "1.0.2", "1.0.10", "1.0a", "1.0b2", "2.0b10", "a1", "1a", ""]


def sign(value):
    return (value > 0) - (value < 0)


def test_split_runs():
    assert split_runs("1.0.10") == ["1", ".", "0", ".", "10"]
    assert split_runs("2.0b3") == ["2", ".", "0", "b", "3"]
    assert split_runs(None) == []


def test_numeric_segments_compare_as_integers():
    assert compare("1.0.1", "1.0.2") < 0
    assert compare("1.0.10", "1.0.2") > 0
    assert compare("10.0", "9.9") > 0


def test_missing_trailing_segment_is_lower():
    # "1.0" and "1.0.0" are not considered equal
    assert compare("1.0", "1.0.0") < 0
    assert compare("1.0.0", "1.0") > 0


def test_letter_runs_compare_lexically():
    assert compare("1.0a", "1.0b") < 0
    assert compare("2.0b3", "2.0b10") < 0


def test_mismatched_runs_fall_back_to_lexical_remainder():
    # "a" vs "1" at the first position: "a1" > "1a" as plain strings
    assert compare("a1", "1a") > 0
    assert compare("1a", "a1") < 0


def test_equal_versions():
    for v in VERSIONS:
        assert compare(v, v) == 0
    assert compare(None, "") == 0


def test_antisymmetry():
    for a, b in permutations(VERSIONS, 2):
        assert sign(compare(a, b)) == -sign(compare(b, a)), (a, b)


def test_non_string_versions_compare_by_string_form():
    assert split_runs(1) == ["1"]
    assert compare(1, "1") == 0
    assert compare(2, "10") < 0
    assert compare("1.0", 1) > 0


def test_version_key_sorting():
    assert sorted(["1.0.10", "1.0.2", "1.0.1"], key=version_key) == ["1.0.1", "1.0.2", "1.0.10"]
