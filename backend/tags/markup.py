"""
TagWeave Markup Primitives.

Tag syntax, profile conditions and span replacement shared by the
expansion passes.
Requires Python 3.11+.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass

# <!--@ directive args @-->  (group 1: directive, group 2: arguments)
TAG_PATTERN = re.compile(r"<!--@\s*(\w+)\s*(.*?)\s*@-->", re.DOTALL)

# <!--$ <xml data> $-->
DATA_REGION_PATTERN = re.compile(r"<!--\$(.+?)\$-->", re.DOTALL)

# $$Name$$, but not live variables written as $$!Name$$
VARIABLE_PATTERN = re.compile(r"\$\$(?!!)(.+?)\$\$")

NO_PROFILE_CONDITION = "!"


@dataclass(slots=True, frozen=True)
class Tag:
    """A single directive occurrence located in some text."""

    directive: str
    args: str
    start: int
    end: int
    text: str

    @classmethod
    def from_match(cls, match: re.Match[str]) -> "Tag":
        return cls(
            directive=match.group(1),
            args=match.group(2),
            start=match.start(),
            end=match.end(),
            text=match.group(0),
        )


def find_tag(text: str, pos: int = 0) -> Tag | None:
    """Find the next tag at or after ``pos``."""
    match = TAG_PATTERN.search(text, pos)
    return Tag.from_match(match) if match else None


def iter_tags(text: str) -> Iterator[Tag]:
    """Yield every tag in the text, left to right."""
    for match in TAG_PATTERN.finditer(text):
        yield Tag.from_match(match)


def replace_span(
    text: str,
    start: int,
    end: int,
    replacement: str,
    remove_newline: bool = True,
) -> tuple[str, int]:
    """
    Replace ``text[start:end]`` and return the new text and resume position.

    When ``remove_newline`` is set, one carriage return and one newline
    directly following the span are removed too, so a tag on its own line
    does not leave a blank line behind.
    """
    if remove_newline:
        if end < len(text) and text[end] == "\r":
            end += 1
        if end < len(text) and text[end] == "\n":
            end += 1

    return text[:start] + replacement + text[end:], start + len(replacement)


def split_profile(value: str) -> tuple[str, str | None]:
    """
    Split ``path:profile`` into its parts.

    Only a single colon counts, and a colon followed by a slash is treated
    as part of an absolute path (``C:\\site\\page``).
    """
    value = value.strip()
    if value.count(":") != 1:
        return value, None

    index = value.index(":")
    if index + 1 < len(value) and value[index + 1] in "\\/":
        return value, None

    path, profile = value[:index].strip(), value[index + 1:].strip()
    return path, profile or None


def profile_matches(condition: str | None, profile: str | None) -> bool:
    """
    Check a profile condition against the profile being generated.

    No condition always matches, ``!`` matches only the default profile, and
    any other name must equal the active profile (case-insensitive).
    """
    if not condition:
        return True
    if condition == NO_PROFILE_CONDITION:
        return not profile
    return profile is not None and condition.lower() == profile.lower()
