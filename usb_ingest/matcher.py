"""Glob pattern compilation for copy rules and scan exclusions.

Patterns are translated to regular expressions once and returned as a
callable predicate. Supported syntax:

- ``*`` matches any run of characters within one path segment
- ``?`` matches a single character within one path segment
- ``[abc]``, ``[a-z]``, ``[!abc]`` character classes
- ``**`` as a whole segment matches zero or more segments
- ``{a,b,c}`` alternatives, which may be nested and may contain ``/``
- ``\\`` escapes the next character
- a leading ``!`` negates the whole pattern
"""

import re
from dataclasses import dataclass
from typing import Iterable

from .errors import GlobCompileError


@dataclass(frozen=True)
class MatchOptions:
    """Flags controlling how a pattern is compiled."""
    nocase: bool = True
    dot: bool = False


# Copy rules never pick up hidden files through wildcards.
RULE_PROFILE = MatchOptions(nocase=True, dot=False)
# Exclusions must be able to catch .DS_Store, ._foo and friends.
EXCLUSION_PROFILE = MatchOptions(nocase=True, dot=True)

_GLOBSTAR = "**"


def _class_end(pattern: str, start: int) -> int:
    """Return the index of the ']' closing the class opened at start, or -1."""
    i = start + 1
    if i < len(pattern) and pattern[i] in "!^":
        i += 1
    # A ']' right after the opening bracket is a literal member.
    if i < len(pattern) and pattern[i] == "]":
        i += 1
    while i < len(pattern):
        if pattern[i] == "\\":
            i += 2
            continue
        if pattern[i] == "]":
            return i
        i += 1
    return -1


def _split_brace(pattern: str, start: int) -> tuple[int, list[str]]:
    """Split the brace group opened at start into its top-level alternatives."""
    depth = 0
    parts = []
    last = start + 1
    i = start
    while i < len(pattern):
        c = pattern[i]
        if c == "\\":
            i += 2
            continue
        if c == "[":
            end = _class_end(pattern, i)
            if end != -1:
                i = end + 1
                continue
        elif c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                parts.append(pattern[last:i])
                return i, parts
        elif c == "," and depth == 1:
            parts.append(pattern[last:i])
            last = i + 1
        i += 1
    return -1, parts


def expand_braces(pattern: str) -> list[str]:
    """Expand every brace group in pattern into a flat list of patterns.

    A group without a top-level comma (``{a}``) is kept literally.
    Raises ValueError on unterminated groups or classes.
    """
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if c == "\\":
            i += 2
            continue
        if c == "[":
            end = _class_end(pattern, i)
            if end == -1:
                raise ValueError("unterminated character class")
            i = end + 1
            continue
        if c == "{":
            end, alternatives = _split_brace(pattern, i)
            if end == -1:
                raise ValueError("unterminated brace group")
            if len(alternatives) > 1:
                prefix, suffix = pattern[:i], pattern[end + 1:]
                expanded = []
                for alternative in alternatives:
                    expanded.extend(expand_braces(prefix + alternative + suffix))
                return expanded
        i += 1
    return [pattern]


def _translate_class(body: str) -> str:
    negate = body[:1] in ("!", "^")
    if negate:
        body = body[1:]
    out = []
    i = 0
    while i < len(body):
        c = body[i]
        if c == "\\" and i + 1 < len(body):
            out.append(re.escape(body[i + 1]))
            i += 2
            continue
        out.append(c if c == "-" else re.escape(c))
        i += 1
    if negate:
        return "[^/" + "".join(out) + "]"
    return "[" + "".join(out) + "]"


def _translate_segment(segment: str, options: MatchOptions) -> str:
    out = []
    explicit_dot = segment.startswith(".") or segment.startswith("\\.")
    if not options.dot and not explicit_dot:
        out.append(r"(?!\.)")
    # A lone "*" never matches an empty segment ("a/*" must not match "a/").
    if segment == "*":
        out.append("[^/]+")
        return "".join(out)
    i = 0
    n = len(segment)
    while i < n:
        c = segment[i]
        if c == "*":
            while i < n and segment[i] == "*":
                i += 1
            out.append("[^/]*")
            continue
        if c == "?":
            out.append("[^/]")
        elif c == "[":
            end = _class_end(segment, i)
            if end == -1:
                raise ValueError("unterminated character class")
            out.append(_translate_class(segment[i + 1:end]))
            i = end + 1
            continue
        elif c == "\\":
            if i + 1 >= n:
                raise ValueError("dangling escape")
            out.append(re.escape(segment[i + 1]))
            i += 2
            continue
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


def translate(pattern: str, options: MatchOptions) -> str:
    """Translate a single brace-free glob into a regular expression body."""
    segments = []
    for segment in pattern.split("/"):
        if segment == _GLOBSTAR and segments and segments[-1] == _GLOBSTAR:
            continue
        segments.append(segment)

    any_segment = "[^/]+" if options.dot else r"(?!\.)[^/]+"
    last = len(segments) - 1
    parts = []
    for i, segment in enumerate(segments):
        if segment == _GLOBSTAR:
            if i == 0 and i == last:
                parts.append(f"{any_segment}(?:/{any_segment})*")
            elif i == last:
                # "dir/**" also matches "dir" itself
                parts.append(f"(?:/{any_segment})*")
            elif i == 0:
                parts.append(f"(?:{any_segment}/)*")
            else:
                parts.append(f"/(?:{any_segment}/)*")
            continue
        if i > 0 and segments[i - 1] != _GLOBSTAR:
            parts.append("/")
        parts.append(_translate_segment(segment, options))
    return "".join(parts)


class GlobMatcher:
    """A compiled glob pattern; call it with a path to test for a match."""

    __slots__ = ("pattern", "options", "regex", "negated")

    def __init__(self, pattern: str, options: MatchOptions, regex: re.Pattern, negated: bool):
        self.pattern = pattern
        self.options = options
        self.regex = regex
        self.negated = negated

    def __call__(self, path) -> bool:
        candidate = str(path).replace("\\", "/")
        return (self.regex.fullmatch(candidate) is not None) != self.negated

    def __repr__(self) -> str:
        return f"GlobMatcher({self.pattern!r}, {self.options!r})"


def compile_pattern(pattern: str, options: MatchOptions = RULE_PROFILE) -> GlobMatcher:
    """
    Compile a glob pattern into a path predicate.

    Raises:
        GlobCompileError: if the pattern is empty or malformed.
    """
    if not isinstance(pattern, str) or not pattern:
        raise GlobCompileError(str(pattern), "pattern must be a non-empty string")

    body = pattern
    negated = False
    if body.startswith("!") and not body.startswith("!("):
        negated = True
        body = body[1:]
        if not body:
            raise GlobCompileError(pattern, "negation without a pattern")

    try:
        alternatives = [translate(p, options) for p in expand_braces(body)]
        flags = re.IGNORECASE if options.nocase else 0
        regex = re.compile("(?:" + "|".join(alternatives) + ")", flags)
    except (ValueError, re.error) as e:
        raise GlobCompileError(pattern, str(e)) from e

    return GlobMatcher(pattern, options, regex, negated)


class ExclusionSet:
    """Always-ignore patterns, compiled once under the exclusion profile."""

    def __init__(self, patterns: Iterable[str] = ()):
        self.patterns = list(patterns)
        self._matchers = [compile_pattern(p, EXCLUSION_PROFILE) for p in self.patterns]

    def is_excluded(self, relative_path: str, name: str) -> bool:
        """Check both the bare name and the path relative to the scan root."""
        return any(m(name) or m(relative_path) for m in self._matchers)

    def __len__(self) -> int:
        return len(self.patterns)

    def __iter__(self):
        return iter(self.patterns)
