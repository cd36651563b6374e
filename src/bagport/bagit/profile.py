"""Validation of bag metadata against a BagIt profile."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Mapping, Optional

from bagport.errors import ProfileValidationFailure

from .bag import read_tag_file, tag_file_name
from .models import BagProfile, FieldRule
from .serialization import SerializationKind

LOGGER = logging.getLogger(__name__)

# Written by the packaging step itself, so never checked against upstream data.
SYSTEM_GENERATED_FIELD_NAMES = frozenset(
    {"Bagging-Date", "Bag-Size", "Payload-Oxum", "BagIt-Profile-Identifier"}
)

PROFILE_SECTION = "BagIt-Profile"

Diagnostics = Callable[[str], None]


def validate(
    section: str,
    rules: Optional[Mapping[str, FieldRule]],
    fields: Mapping[str, str],
    *,
    warn: Optional[Diagnostics] = None,
) -> list[str]:
    """Check one section's fields against its rules.

    Every violation is collected before failing, in rule order. Missing
    recommended fields are not failures; they are sent to `warn` (the module
    logger by default) and returned.

    Args:
        section: Section name used in messages, e.g. `Bag-Info`.
        rules: Field rules of the section; None means nothing to check.
        fields: Fields actually present in the bag.
        warn: Sink receiving recommended-field warnings.

    Returns:
        list[str]: Warnings emitted for missing recommended fields.

    Raises:
        ProfileValidationFailure: If any rule is violated.
    """
    if rules is None:
        return []

    sink = warn or LOGGER.warning
    violations: list[str] = []
    warnings: list[str] = []
    for name, rule in rules.items():
        if name in SYSTEM_GENERATED_FIELD_NAMES:
            LOGGER.debug("Skipping system generated field %s", name)
            continue

        if name in fields:
            value = fields[name]
            if rule.values and value not in rule.values:
                violations.append(
                    f'"{value}" is not valid for "{name}". Valid values: {",".join(rule.values)}'
                )
        elif rule.required:
            violations.append(f'"{name}" is a required field.')
        elif rule.recommended:
            message = f"{section} does not contain the recommended field {name}"
            warnings.append(message)
            sink(message)

    if violations:
        raise ProfileValidationFailure(section, violations)
    return warnings


def validate_bag(
    bag_dir: Path,
    profile: BagProfile,
    *,
    warn: Optional[Diagnostics] = None,
) -> list[str]:
    """Validate a bag directory's tag files and structure against a profile.

    Each profile section is read from its tag file (`Bag-Info` from
    `bag-info.txt`); a missing tag file contributes no fields. Structural
    requirements are checked afterwards and reported under `BagIt-Profile`.

    Returns:
        list[str]: Warnings for missing recommended fields.

    Raises:
        ProfileValidationFailure: For the first section with violations.
    """
    warnings: list[str] = []
    for section, rules in profile.sections.items():
        tag_path = bag_dir / tag_file_name(section)
        fields = read_tag_file(tag_path) if tag_path.is_file() else {}
        warnings.extend(validate(section, rules, fields, warn=warn))

    problems: list[str] = []
    for algorithm in profile.manifests_required:
        name = f"manifest-{algorithm}.txt"
        if not (bag_dir / name).is_file():
            problems.append(f'"{name}" is a required manifest.')
    for algorithm in profile.tag_manifests_required:
        name = f"tagmanifest-{algorithm}.txt"
        if not (bag_dir / name).is_file():
            problems.append(f'"{name}" is a required tag manifest.')
    for name in profile.tag_files_required:
        if not (bag_dir / name).is_file():
            problems.append(f'"{name}" is a required tag file.')

    if profile.accept_bagit_version:
        declaration = bag_dir / "bagit.txt"
        version = ""
        if declaration.is_file():
            version = read_tag_file(declaration).get("BagIt-Version", "")
        if version not in profile.accept_bagit_version:
            problems.append(
                f'"{version}" is not valid for "BagIt-Version". '
                f"Valid values: {','.join(profile.accept_bagit_version)}"
            )

    if problems:
        raise ProfileValidationFailure(PROFILE_SECTION, problems)
    return warnings


def check_serialization(profile: BagProfile, kind: SerializationKind) -> None:
    """Ensure a serialization is allowed by the profile.

    Raises:
        ProfileValidationFailure: If the profile forbids, requires, or does not
            accept the serialization.
    """
    if kind is SerializationKind.DIRECTORY:
        if profile.serialization == "required":
            raise ProfileValidationFailure(
                PROFILE_SECTION, ["Serialization is required by the profile."]
            )
        return

    if profile.serialization == "forbidden":
        raise ProfileValidationFailure(
            PROFILE_SECTION, ["Serialization is forbidden by the profile."]
        )
    accepted = profile.accept_serialization
    if accepted and not set(kind.mimetypes) & set(accepted):
        raise ProfileValidationFailure(
            PROFILE_SECTION,
            [
                f'"{kind.label}" is not an accepted serialization. '
                f'Valid values: {",".join(accepted)}'
            ],
        )


__all__ = [
    "SYSTEM_GENERATED_FIELD_NAMES",
    "PROFILE_SECTION",
    "validate",
    "validate_bag",
    "check_serialization",
]
