"""
TagWeave Variables and Data Regions.

Extracts profile variables from XML data regions and substitutes
``$$Name$$`` placeholders.
Requires Python 3.11+.
"""

import re
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path

from core.models import EngineVariable
from tags.errors import DataRegionError, VariableNotFoundError
from tags.markup import DATA_REGION_PATTERN, VARIABLE_PATTERN, replace_span

BUILTIN_PREFIX = "dna."
_DATE_PATTERN = re.compile(r'^Date\("(.*)"\)$', re.DOTALL)


def extract_data(text: str) -> tuple[str, list[EngineVariable]]:
    """
    Remove every data region from the text and collect its variables.

    A region looks like::

        <!--$
        <Data>
            <Variable Name="Title">Home</Variable>
            <Profile Name="fr">
                <Variable Name="Title">Accueil</Variable>
            </Profile>
            <Group Name="Colors" Profile="dark">
                <Variable Name="Background"><Value>#000</Value></Variable>
            </Group>
        </Data>
        $-->

    Later definitions of the same name and profile replace earlier ones.

    Raises:
        DataRegionError: If a region is not valid XML or a variable has no name
    """
    variables: list[EngineVariable] = []

    while (match := DATA_REGION_PATTERN.search(text)) is not None:
        xml_string = match.group(1).strip()
        try:
            root = ET.fromstring(xml_string)
        except ET.ParseError as e:
            raise DataRegionError(f"Malformed data region {xml_string}. {e}") from e

        _extract_variables(root, variables)

        for profile_element in root.findall("Profile"):
            _extract_variables(profile_element, variables, profile=profile_element.get("Name"))

        for group_element in root.findall("Group"):
            _extract_variables(
                group_element,
                variables,
                profile=group_element.get("Profile"),
                group=group_element.get("Name"),
            )

        text, _ = replace_span(text, match.start(), match.end(), "")

    return text, variables


def _extract_variables(
    element: ET.Element,
    variables: list[EngineVariable],
    profile: str | None = None,
    group: str | None = None,
) -> None:
    for variable_element in element.findall("Variable"):
        name = variable_element.get("Name")
        if not name:
            raise DataRegionError(
                f"Variable has no name {ET.tostring(variable_element, encoding='unicode').strip()}"
            )

        value_element = variable_element.find("Value")
        if value_element is not None:
            value = value_element.text or ""
        else:
            value = variable_element.text or ""

        comment_element = variable_element.find("Comment")
        comment = comment_element.text if comment_element is not None else variable_element.get("Comment")

        variable = EngineVariable(
            name=name,
            value=value,
            profile=variable_element.get("Profile", profile) or None,
            group=variable_element.get("Group", group),
            comment=comment,
        )

        existing = find_variable(variables, variable.name, variable.profile)
        if existing is not None and _same_profile(existing.profile, variable.profile):
            existing.value = variable.value
        else:
            variables.append(variable)


def _same_profile(a: str | None, b: str | None) -> bool:
    return (a or "").lower() == (b or "").lower()


def find_variable(
    variables: list[EngineVariable], name: str, profile: str | None
) -> EngineVariable | None:
    """
    Look up a variable for a profile, falling back to the default profile.

    Names and profiles compare case-insensitively.
    """
    lowered = name.lower()
    for variable in variables:
        if variable.name.lower() == lowered and _same_profile(variable.profile, profile):
            return variable

    if profile:
        for variable in variables:
            if variable.name.lower() == lowered and not variable.profile:
                return variable

    return None


def substitute_variables(
    text: str,
    variables: list[EngineVariable],
    profile: str | None,
    source: Path,
    project_path: Path,
) -> str:
    """
    Replace every ``$$Name$$`` placeholder in a single pass.

    Built-in ``$$dna.*$$`` names resolve to the source path, the project
    path or the current date.

    Raises:
        VariableNotFoundError: If a placeholder has no value
    """

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name.startswith(BUILTIN_PREFIX):
            return _builtin_value(name[len(BUILTIN_PREFIX):], profile, source, project_path)

        variable = find_variable(variables, name, profile)
        if variable is None:
            raise VariableNotFoundError(name, profile)
        return variable.value

    return VARIABLE_PATTERN.sub(replace, text)


def _builtin_value(name: str, profile: str | None, source: Path, project_path: Path) -> str:
    date_match = _DATE_PATTERN.match(name)
    if date_match:
        return datetime.now().strftime(date_match.group(1))

    if name.lower() == "filepath":
        return str(source)

    if name.lower() == "projectpath":
        return str(project_path)

    raise VariableNotFoundError(BUILTIN_PREFIX + name, profile)
