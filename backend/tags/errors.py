"""
TagWeave Tag Expansion Errors.

Requires Python 3.11+.
"""

from pathlib import Path


class TagError(Exception):
    """Expanding a file's tags failed; the file produces no output."""


class MalformedTagError(TagError):
    """A recognized directive is missing its arguments."""

    def __init__(self, tag: str, source: Path) -> None:
        super().__init__(f"Malformed match {tag} in {source}")
        self.tag = tag
        self.source = source


class UnknownDirectiveError(TagError):
    """A tag names a directive this engine does not know."""

    def __init__(self, directive: str, tag: str, source: Path) -> None:
        super().__init__(f"Unknown match {tag} in {source}")
        self.directive = directive
        self.tag = tag
        self.source = source


class IncludeNotFoundError(TagError):
    """An include tag points at a file that cannot be found."""

    def __init__(self, include_path: str, source: Path) -> None:
        super().__init__(f"Include file not found {include_path} (included from {source})")
        self.include_path = include_path
        self.source = source


class CircularIncludeError(TagError):
    """An include chain revisits a file already being expanded."""

    def __init__(self, chain: list[Path]) -> None:
        super().__init__("Circular reference detected " + " -> ".join(str(p) for p in chain))
        self.chain = chain


class DataRegionError(TagError):
    """A variable/data region could not be parsed."""


class VariableNotFoundError(TagError):
    """A placeholder names a variable with no value for the profile."""

    def __init__(self, name: str, profile: str | None) -> None:
        super().__init__(f"Variable not found {name} for profile '{profile or ''}'")
        self.name = name
        self.profile = profile


class ScriptEvaluationError(TagError):
    """The script evaluator is missing or failed."""
