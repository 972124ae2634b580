"""
TagWeave Tag Processor.

Expands include/output/partial/inline/script tags, extracts data regions
and substitutes variables for every output target of a source file.
Requires Python 3.11+.
"""

from pathlib import Path
from typing import Protocol

from core.models import FileProcessingData, OutputTarget, read_source
from core.profiles import EngineProfile
from tags.errors import (
    CircularIncludeError,
    IncludeNotFoundError,
    MalformedTagError,
    ScriptEvaluationError,
    TagError,
    UnknownDirectiveError,
)
from tags.markup import Tag, find_tag, iter_tags, profile_matches, replace_span, split_profile
from tags.variables import extract_data, substitute_variables
from utils.config import EngineSettings
from utils.logger import LoggerMixin

INCLUDE = "include"
OUTPUT = "output"
PARTIAL = "partial"
INLINE = "inline"
SCRIPT = "script"


class ScriptEvaluator(Protocol):
    """Evaluates the body of a ``script`` tag and returns the text to insert."""

    def evaluate(self, code: str, source: Path, profile: str | None) -> str:
        ...


class TagProcessor(LoggerMixin):
    """
    Compiles tagged source files.

    The processor is synchronous and stateless between calls; the
    orchestrator runs it in a worker thread.

    Usage:
        processor = TagProcessor(HtmlProfile(), settings)
        data = FileProcessingData(full_path=path, contents=read_source(path))
        processor.process(data)
        for target in data.outputs:
            print(target.path, len(target.contents))
    """

    def __init__(
        self,
        profile: EngineProfile,
        settings: EngineSettings,
        script_evaluator: ScriptEvaluator | None = None,
    ):
        self.profile = profile
        self.settings = settings
        self.script_evaluator = script_evaluator

    @property
    def project_path(self) -> Path:
        return Path(self.settings.monitor_path).resolve()

    def process(self, data: FileProcessingData) -> FileProcessingData:
        """
        Compile a source file in place.

        Fills ``data.outputs`` with one target per ``output`` tag, each with
        its own profile's compiled contents, and ``data.contents`` with the
        compilation for the first profile. Partial files only get their
        output/partial tags scanned.

        Raises:
            TagError: If any tag, data region or variable cannot be expanded
        """
        source = data.full_path
        self.scan_outputs(data)

        if data.is_partial:
            self.log.debug("partial_scanned", path=str(source))
            return data

        profiles: list[str | None] = []
        for target in data.outputs:
            if target.profile not in profiles:
                profiles.append(target.profile)
        if not profiles:
            profiles.append(None)

        compiled: dict[str | None, str] = {}
        for profile in profiles:
            compiled[profile] = self.compile(source, data.contents, profile)

        for target in data.outputs:
            target.contents = compiled[target.profile]
        data.contents = compiled[profiles[0]]

        self.log.debug(
            "file_compiled",
            path=str(source),
            targets=len(data.outputs),
            profiles=[p or "" for p in profiles],
        )
        return data

    def compile(self, source: Path, text: str, profile: str | None) -> str:
        """Expand tags, strip data regions and substitute variables for one profile."""
        expanded = self.expand(source, text, profile, [source.resolve()])
        stripped, variables = extract_data(expanded)
        return substitute_variables(stripped, variables, profile, source, self.project_path)

    def scan_outputs(self, data: FileProcessingData) -> None:
        """
        Collect output targets and the partial flag from the top-level file.

        Unknown directives are left for the expansion pass to report.
        """
        source = data.full_path
        outputs: list[OutputTarget] = []
        is_partial = data.is_partial or self.profile.is_partial_path(source)

        for index, tag in enumerate(iter_tags(data.contents)):
            if tag.directive == PARTIAL and index == 0:
                is_partial = True
            elif tag.directive == OUTPUT:
                outputs.append(self._output_target(source, tag))

        data.outputs = outputs
        data.is_partial = is_partial

    def _output_target(self, source: Path, tag: Tag) -> OutputTarget:
        if not tag.args:
            raise MalformedTagError(tag.text, source)

        path_text, profile = split_profile(tag.args)
        if profile is None:
            parts = tag.args.rsplit(None, 1)
            if len(parts) == 2:
                path_text, profile = parts

        path = Path(path_text.strip())
        if not path.name:
            raise MalformedTagError(tag.text, source)
        if not path.suffix:
            path = path.with_name(path.name + self.profile.output_extension)
        if not path.is_absolute():
            base = Path(self.settings.output_dir) if self.settings.output_dir else source.parent
            path = base / path

        return OutputTarget(path=path.resolve(), profile=profile)

    def default_output_path(self, source: Path) -> Path:
        """Same stem as the source, with the profile's output extension."""
        base = Path(self.settings.output_dir) if self.settings.output_dir else source.parent
        return (base / (source.stem + self.profile.output_extension)).resolve()

    def is_partial_source(self, path: Path, text: str) -> bool:
        """Partial by name, or by a ``partial`` tag as the first tag."""
        if self.profile.is_partial_path(path):
            return True
        first = find_tag(text)
        return first is not None and first.directive == PARTIAL

    def expand(self, source: Path, text: str, profile: str | None, stack: list[Path]) -> str:
        """
        Replace every tag in ``text``, left to right.

        Included files are expanded recursively before being substituted;
        ``stack`` holds the resolved paths of the include chain.
        """
        pos = 0
        while (tag := find_tag(text, pos)) is not None:
            if tag.directive in (PARTIAL, OUTPUT):
                text, pos = replace_span(text, tag.start, tag.end, "")
            elif tag.directive == INCLUDE:
                replacement = self._include(source, tag, profile, stack)
                if replacement is None:
                    text, pos = replace_span(text, tag.start, tag.end, "")
                else:
                    text, pos = replace_span(text, tag.start, tag.end, replacement, remove_newline=False)
            elif tag.directive == INLINE:
                replacement = self._inline(tag, profile)
                text, pos = replace_span(
                    text, tag.start, tag.end, replacement, remove_newline=not replacement
                )
            elif tag.directive == SCRIPT:
                replacement = self._script(source, tag, profile)
                text, pos = replace_span(
                    text, tag.start, tag.end, replacement, remove_newline=not replacement
                )
            else:
                raise UnknownDirectiveError(tag.directive, tag.text, source)

        return text

    def _include(
        self, source: Path, tag: Tag, profile: str | None, stack: list[Path]
    ) -> str | None:
        if not tag.args:
            raise MalformedTagError(tag.text, source)

        include_path, condition = split_profile(tag.args)
        if not profile_matches(condition, profile):
            return None

        resolved = self.resolve_include(source, include_path)
        if resolved is None:
            raise IncludeNotFoundError(include_path, source)
        if resolved in stack:
            raise CircularIncludeError(stack + [resolved])

        try:
            child_text = read_source(resolved)
        except (OSError, UnicodeDecodeError) as e:
            raise IncludeNotFoundError(f"{include_path} ({e})", source) from e

        return self.expand(resolved, child_text, profile, stack + [resolved])

    def _inline(self, tag: Tag, profile: str | None) -> str:
        text = tag.args
        condition = None
        if text.startswith(":"):
            parts = text[1:].split(None, 1)
            condition = parts[0] if parts else ""
            text = parts[1] if len(parts) > 1 else ""

        return text if profile_matches(condition, profile) else ""

    def _script(self, source: Path, tag: Tag, profile: str | None) -> str:
        if self.script_evaluator is None:
            raise ScriptEvaluationError(f"No script evaluator configured for {tag.text} in {source}")

        try:
            return self.script_evaluator.evaluate(tag.args, source, profile)
        except TagError:
            raise
        except Exception as e:
            raise ScriptEvaluationError(f"Script failed in {source}. {e}") from e

    def resolve_include(self, including_path: Path, include_path: str) -> Path | None:
        """
        Find an include target on disk.

        Tries the name as given, then with the partial prefix, then with each
        profile extension appended (without and with the prefix).
        """
        path = Path(include_path.strip().strip('"'))
        if not path.is_absolute():
            path = including_path.parent / path

        prefixed = path.with_name(self.profile.partial_prefix + path.name)
        candidates = [path, prefixed]
        for extension in self.profile.extensions:
            if not extension:
                continue
            candidates.append(path.with_name(path.name + extension))
            candidates.append(prefixed.with_name(prefixed.name + extension))

        for candidate in candidates:
            if candidate.is_file():
                return candidate.resolve()
        return None

    def find_includes(self, path: Path, text: str) -> set[Path]:
        """Resolved direct includes of a file, ignoring profile conditions."""
        includes: set[Path] = set()
        for tag in iter_tags(text):
            if tag.directive != INCLUDE or not tag.args:
                continue
            include_path, _ = split_profile(tag.args)
            resolved = self.resolve_include(path, include_path)
            if resolved is not None:
                includes.add(resolved)
        return includes
