"""
TagWeave Engine Profiles.

Per-format strategies: which files to watch, what to generate, and hooks
into the processing pipeline.
Requires Python 3.11+.
"""

from pathlib import Path

from core.models import FileProcessingData


class EngineProfile:
    """
    Base strategy for one input/output format.

    Subclasses set the class attributes and may override the async hooks.
    ``pre_process`` runs after the file is read and before any tag is
    touched; it may set ``data.skip`` or record an error. ``post_expand``
    runs once every output target has its compiled contents.
    """

    name: str = "base"
    extensions: tuple[str, ...] = ()
    partial_extensions: tuple[str, ...] = ()
    output_extension: str = ".out"
    partial_prefix: str = "_"

    def __init__(self, extensions: list[str] | None = None) -> None:
        if extensions:
            self.extensions = tuple(extensions)

    @property
    def watch_patterns(self) -> list[str]:
        """File name globs for the watcher."""
        return [f"*{extension}" for extension in self.extensions]

    def is_source(self, path: Path) -> bool:
        """Check if a file is an input handled by this profile."""
        return any(path.name.endswith(extension) for extension in self.extensions)

    def is_partial_path(self, path: Path) -> bool:
        """Partial by naming convention, regardless of the file's tags."""
        return path.name.startswith(self.partial_prefix) or any(
            path.name.endswith(extension) for extension in self.partial_extensions
        )

    async def pre_process(self, data: FileProcessingData) -> None:
        """Hook before tag expansion."""

    async def post_expand(self, data: FileProcessingData) -> None:
        """Hook after tag expansion, before outputs are written."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(extensions={list(self.extensions)})"


class HtmlProfile(EngineProfile):
    """Tagged HTML sources generating ``.html`` pages."""

    name = "html"
    extensions = (".dnaweb", "._dnaweb")
    partial_extensions = ("._dnaweb",)
    output_extension = ".html"


class CSharpProfile(EngineProfile):
    """Tagged C# sources generating ``.cs`` files."""

    name = "csharp"
    extensions = (".dnacs",)
    output_extension = ".cs"


class DebugProfile(EngineProfile):
    """Watches every file and reports changes without generating anything."""

    name = "debug"
    extensions = ("",)
    output_extension = ".debug"

    @property
    def watch_patterns(self) -> list[str]:
        return ["*"]

    async def pre_process(self, data: FileProcessingData) -> None:
        data.skip = True
        data.skip_message = f"Debug profile observed a change to {data.full_path}"


PROFILES: dict[str, type[EngineProfile]] = {
    HtmlProfile.name: HtmlProfile,
    CSharpProfile.name: CSharpProfile,
    DebugProfile.name: DebugProfile,
}


def get_profile(name: str, extensions: list[str] | None = None) -> EngineProfile:
    """
    Create a profile by name.

    Raises:
        ValueError: If the name is not a known profile
    """
    try:
        profile_class = PROFILES[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown engine profile '{name}'. Choose from: {', '.join(sorted(PROFILES))}"
        ) from None
    return profile_class(extensions=extensions)
