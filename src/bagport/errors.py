"""Error taxonomy shared by the import and packaging layers."""

from __future__ import annotations

from typing import Iterable


class BagportError(Exception):
    """Base exception for bagport operations."""


class IoFailure(BagportError):
    """Raised when a filesystem or stream operation fails."""


class MalformedMetadata(BagportError):
    """Raised when resource metadata cannot be parsed or is structurally invalid."""


class ArchiveFormatViolation(BagportError):
    """Raised for corrupt containers, size mismatches, and unsafe entry paths."""


class UnsupportedEncoding(BagportError):
    """Raised when an archive suffix does not map to a known serialization."""


class ProfileValidationFailure(BagportError):
    """Raised when bag metadata does not satisfy a profile section.

    Attributes:
        section: Profile section that failed validation.
        violations: One human-readable line per violated field rule.
    """

    def __init__(self, section: str, violations: Iterable[str]) -> None:
        self.section = section
        self.violations = list(violations)
        lines = "".join(f"{violation}\n" for violation in self.violations)
        super().__init__(
            "Bag profile validation failure: The following errors occurred in the "
            f"{section}:\n{lines}"
        )


class BagVerificationError(BagportError):
    """Raised when a bag's files disagree with its manifests.

    Attributes:
        problems: Every missing, unexpected, or mismatched file found.
    """

    def __init__(self, bag_dir: object, problems: Iterable[str]) -> None:
        self.problems = list(problems)
        details = "\n".join(f"  - {problem}" for problem in self.problems)
        super().__init__(f"Bag at {bag_dir} failed verification:\n{details}")


__all__ = [
    "BagportError",
    "IoFailure",
    "MalformedMetadata",
    "ArchiveFormatViolation",
    "UnsupportedEncoding",
    "ProfileValidationFailure",
    "BagVerificationError",
]
