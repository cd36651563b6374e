"""BagIt packaging: profiles, bag files, and archive serialization."""

from .bag import (
    BAG_INFO_SECTION,
    SUPPORTED_ALGORITHMS,
    create_bag,
    payload_directory,
    read_tag_file,
    tag_file_name,
    verify_bag,
    write_tag_file,
)
from .models import BagProfile, FieldRule
from .profile import SYSTEM_GENERATED_FIELD_NAMES, check_serialization, validate, validate_bag
from .serialization import (
    ArchiveEntry,
    SerializationKind,
    deserialize,
    iter_entries,
    serialize,
    strip_suffix,
)

__all__ = [
    "BAG_INFO_SECTION",
    "SUPPORTED_ALGORITHMS",
    "create_bag",
    "payload_directory",
    "read_tag_file",
    "tag_file_name",
    "verify_bag",
    "write_tag_file",
    "BagProfile",
    "FieldRule",
    "SYSTEM_GENERATED_FIELD_NAMES",
    "check_serialization",
    "validate",
    "validate_bag",
    "ArchiveEntry",
    "SerializationKind",
    "deserialize",
    "iter_entries",
    "serialize",
    "strip_suffix",
]
