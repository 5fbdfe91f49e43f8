"""Tests for usb_ingest.matcher module."""

import pytest

from usb_ingest.errors import GlobCompileError
from usb_ingest.matcher import (
    EXCLUSION_PROFILE,
    RULE_PROFILE,
    ExclusionSet,
    MatchOptions,
    compile_pattern,
    expand_braces,
)


def rule(pattern):
    return compile_pattern(pattern, RULE_PROFILE)


def exclusion(pattern):
    return compile_pattern(pattern, EXCLUSION_PROFILE)


class TestProfiles:
    """Tests for the two option profiles."""

    def test_rule_profile(self):
        assert RULE_PROFILE == MatchOptions(nocase=True, dot=False)

    def test_exclusion_profile(self):
        assert EXCLUSION_PROFILE == MatchOptions(nocase=True, dot=True)

    def test_case_insensitive(self):
        assert rule("*.jpg")("PHOTO.JPG")
        assert exclusion("thumbs.db")("Thumbs.db")

    def test_case_sensitive_when_asked(self):
        matcher = compile_pattern("*.jpg", MatchOptions(nocase=False, dot=False))
        assert matcher("photo.jpg")
        assert not matcher("PHOTO.JPG")

    def test_rule_profile_skips_dotfiles(self):
        assert not rule("*.jpg")(".hidden.jpg")
        assert not rule("**/*.jpg")("DCIM/.hidden.jpg")
        assert not rule("**/*.jpg")(".trash/photo.jpg")

    def test_rule_profile_explicit_dot_matches(self):
        assert rule(".hidden.jpg")(".hidden.jpg")
        assert rule(".*")(".bashrc")

    def test_exclusion_profile_includes_dotfiles(self):
        assert exclusion("*")(".DS_Store")
        assert exclusion("**/*.jpg")(".trash/photo.jpg")


class TestWildcards:
    """Tests for *, ?, ** and character classes."""

    def test_star_stays_in_segment(self):
        matcher = rule("*.jpg")
        assert matcher("photo.jpg")
        assert not matcher("DCIM/photo.jpg")

    def test_lone_star_needs_a_character(self):
        assert not rule("*")("")
        assert not rule("DCIM/*")("DCIM/")
        assert rule("DCIM/*")("DCIM/a")

    def test_question_mark(self):
        matcher = rule("IMG_000?.jpg")
        assert matcher("IMG_0001.jpg")
        assert not matcher("IMG_00010.jpg")
        assert not matcher("IMG_000.jpg")

    def test_globstar_matches_zero_segments(self):
        assert rule("**/*.jpg")("photo.jpg")
        assert rule("DCIM/**/*.jpg")("DCIM/photo.jpg")

    def test_globstar_matches_many_segments(self):
        assert rule("**/*.jpg")("a/b/c/photo.jpg")
        assert rule("DCIM/**/*.jpg")("DCIM/100/IMG1.jpg")
        assert rule("DCIM/**/*.jpg")("DCIM/100/sub/IMG1.jpg")

    def test_globstar_keeps_prefix(self):
        assert not rule("DCIM/**/*.jpg")("Other/100/IMG1.jpg")

    def test_trailing_globstar_matches_directory_itself(self):
        matcher = rule("DCIM/**")
        assert matcher("DCIM")
        assert matcher("DCIM/100/IMG1.jpg")
        assert not matcher("DCIMX")

    def test_lone_globstar(self):
        assert rule("**")("a/b/c")
        assert not rule("**")(".git/config")

    def test_repeated_globstars_collapse(self):
        assert rule("**/**/*.jpg")("photo.jpg")
        assert rule("a/**/**/b")("a/b")

    def test_character_class(self):
        matcher = rule("IMG_[0-9]*.jpg")
        assert matcher("IMG_5.jpg")
        assert not matcher("IMG_a.jpg")

    def test_negated_character_class(self):
        matcher = rule("[!a]*.txt")
        assert matcher("b.txt")
        assert not matcher("a.txt")

    def test_escape(self):
        matcher = rule(r"photo\*.jpg")
        assert matcher("photo*.jpg")
        assert not matcher("photo1.jpg")

    def test_backslash_paths_are_normalised(self):
        assert rule("DCIM/*.jpg")("DCIM\\a.jpg")

    def test_negated_pattern(self):
        matcher = rule("!*.jpg")
        assert matcher("a.png")
        assert not matcher("a.jpg")


class TestBraces:
    """Tests for brace expansion."""

    def test_expand_simple(self):
        assert expand_braces("*.{jpg,png}") == ["*.jpg", "*.png"]

    def test_expand_multiple_groups(self):
        assert expand_braces("a{b,c}d{e,f}") == ["abde", "abdf", "acde", "acdf"]

    def test_expand_nested(self):
        assert expand_braces("{a,{b,c}}.txt") == ["a.txt", "b.txt", "c.txt"]

    def test_expand_without_braces(self):
        assert expand_braces("DCIM/**/*.jpg") == ["DCIM/**/*.jpg"]

    def test_match_alternatives(self):
        matcher = rule("**/*.{jpg,jpeg,heic}")
        assert matcher("DCIM/a.jpeg")
        assert matcher("b.HEIC")
        assert not matcher("c.png")

    def test_alternatives_with_slashes(self):
        matcher = rule("{DCIM,Photos/Camera}/**/*.jpg")
        assert matcher("DCIM/100/a.jpg")
        assert matcher("Photos/Camera/a.jpg")
        assert not matcher("Photos/a.jpg")

    def test_single_alternative_is_literal(self):
        assert rule("{a}.txt")("{a}.txt")


class TestCompileErrors:
    """Tests for malformed patterns."""

    @pytest.mark.parametrize("pattern", ["", "[abc", "*.{jpg,png", "abc\\", "!"])
    def test_malformed_pattern_raises(self, pattern):
        with pytest.raises(GlobCompileError):
            compile_pattern(pattern, RULE_PROFILE)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            compile_pattern("[abc", RULE_PROFILE)

    def test_error_carries_pattern(self):
        with pytest.raises(GlobCompileError) as exc_info:
            compile_pattern("*.{jpg", RULE_PROFILE)
        assert exc_info.value.pattern == "*.{jpg"
        assert "*.{jpg" in str(exc_info.value)


class TestExclusionSet:
    """Tests for ExclusionSet."""

    def test_matches_name_at_any_depth(self):
        exclusions = ExclusionSet([".DS_Store", "**/__MACOSX/**"])
        assert exclusions.is_excluded(".DS_Store", ".DS_Store")
        assert exclusions.is_excluded("DCIM/100/.DS_Store", ".DS_Store")

    def test_matches_relative_path(self):
        exclusions = ExclusionSet([".DS_Store", "**/__MACOSX/**"])
        assert exclusions.is_excluded("__MACOSX", "__MACOSX")
        assert exclusions.is_excluded("x/__MACOSX/y/._a.jpg", "._a.jpg")

    def test_keeps_other_files(self):
        exclusions = ExclusionSet([".DS_Store", "**/__MACOSX/**"])
        assert not exclusions.is_excluded("DCIM/a.jpg", "a.jpg")

    def test_empty_set(self):
        exclusions = ExclusionSet()
        assert len(exclusions) == 0
        assert not exclusions.is_excluded(".DS_Store", ".DS_Store")

    def test_bad_pattern_fails_on_construction(self):
        with pytest.raises(GlobCompileError):
            ExclusionSet(["ok", "[bad"])

    def test_iterates_patterns(self):
        assert list(ExclusionSet(["a", "b"])) == ["a", "b"]
