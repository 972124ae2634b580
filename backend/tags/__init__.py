"""
TagWeave Tags Package.

Markup parsing, include expansion, data regions and variable substitution.
Requires Python 3.11+.
"""

from tags.errors import (
    TagError,
    MalformedTagError,
    UnknownDirectiveError,
    IncludeNotFoundError,
    CircularIncludeError,
    DataRegionError,
    VariableNotFoundError,
    ScriptEvaluationError,
)
from tags.markup import Tag, find_tag, iter_tags, split_profile, profile_matches
from tags.variables import extract_data, find_variable, substitute_variables
from tags.processor import TagProcessor, ScriptEvaluator

__all__ = [
    # Errors
    "TagError",
    "MalformedTagError",
    "UnknownDirectiveError",
    "IncludeNotFoundError",
    "CircularIncludeError",
    "DataRegionError",
    "VariableNotFoundError",
    "ScriptEvaluationError",
    # Markup
    "Tag",
    "find_tag",
    "iter_tags",
    "split_profile",
    "profile_matches",
    # Variables
    "extract_data",
    "find_variable",
    "substitute_variables",
    # Processor
    "TagProcessor",
    "ScriptEvaluator",
]
