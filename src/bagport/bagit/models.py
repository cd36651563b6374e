"""BagIt profile models."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bagport.errors import IoFailure, MalformedMetadata

PROFILE_INFO_SECTION = "BagIt-Profile-Info"


class FieldRule(BaseModel):
    """Constraint on one tag-file field.

    Attributes:
        required: Whether the field must be present.
        recommended: Whether a missing field should be reported as a warning.
        values: Allowed values in declared order; empty means unconstrained.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    required: bool = False
    recommended: bool = False
    values: List[str] = Field(default_factory=list)


class BagProfile(BaseModel):
    """Declarative description of what a conforming bag must contain.

    Attributes:
        identifier: Value of `BagIt-Profile-Identifier`, if declared.
        sections: Field rules keyed by section name, then field name.
        accept_serialization: MIME types of accepted serializations.
        serialization: Whether serialization is required, optional, or forbidden.
        manifests_required: Digest algorithms that must have payload manifests.
        tag_manifests_required: Digest algorithms that must have tag manifests.
        tag_files_required: Tag files that must exist in the bag.
        accept_bagit_version: Accepted `BagIt-Version` values; empty accepts any.
    """

    model_config = ConfigDict(frozen=True)

    identifier: Optional[str] = None
    sections: Dict[str, Dict[str, FieldRule]] = Field(default_factory=dict)
    accept_serialization: List[str] = Field(default_factory=list)
    serialization: Literal["required", "optional", "forbidden"] = "optional"
    manifests_required: List[str] = Field(default_factory=list)
    tag_manifests_required: List[str] = Field(default_factory=list)
    tag_files_required: List[str] = Field(default_factory=list)
    accept_bagit_version: List[str] = Field(default_factory=list)

    def section(self, name: str) -> Optional[Dict[str, FieldRule]]:
        """Return the field rules for `name`, or None when the profile has none."""
        return self.sections.get(name)

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> "BagProfile":
        """Build a profile from a parsed BagIt-profile document.

        Every top-level `*-Info` mapping other than `BagIt-Profile-Info` is
        treated as a field-rule section.

        Raises:
            MalformedMetadata: If the document does not have the expected shape.
        """
        if not isinstance(data, Mapping):
            raise MalformedMetadata("Bag profile must contain a mapping at the top level.")

        info = data.get(PROFILE_INFO_SECTION) or {}
        if not isinstance(info, Mapping):
            raise MalformedMetadata(f"{PROFILE_INFO_SECTION} must be a mapping.")
        sections: dict[str, Any] = {}
        for key, value in data.items():
            if key == PROFILE_INFO_SECTION or not key.endswith("-Info"):
                continue
            if not isinstance(value, Mapping):
                raise MalformedMetadata(f"Profile section {key} must be a mapping of field rules.")
            sections[key] = {field: rule or {} for field, rule in value.items()}

        try:
            return cls(
                identifier=info.get("BagIt-Profile-Identifier"),
                sections=sections,
                accept_serialization=data.get("Accept-Serialization", []),
                serialization=data.get("Serialization", "optional"),
                manifests_required=data.get("Manifests-Required", []),
                tag_manifests_required=data.get("Tag-Manifests-Required", []),
                tag_files_required=data.get("Tag-Files-Required", []),
                accept_bagit_version=data.get("Accept-BagIt-Version", []),
            )
        except ValidationError as exc:
            raise MalformedMetadata(f"Invalid bag profile: {exc}") from exc

    @classmethod
    def load(cls, path: Path) -> "BagProfile":
        """Load a profile from a JSON document, or YAML for `.yaml`/`.yml` files.

        Raises:
            IoFailure: If the file cannot be read.
            MalformedMetadata: If the file cannot be parsed.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise IoFailure(f"Unable to read bag profile {path}: {exc}") from exc

        try:
            if path.suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(text)
            else:
                data = json.loads(text)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise MalformedMetadata(f"Unable to parse bag profile {path}: {exc}") from exc
        return cls.from_document(data)


__all__ = ["FieldRule", "BagProfile", "PROFILE_INFO_SECTION"]
