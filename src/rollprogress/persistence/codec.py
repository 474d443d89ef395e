from __future__ import annotations

import json
from typing import Any, Dict, Optional

from ..errors import CorruptedSaveError, SaveValidationError
from .models import FORMAT_VERSION, SaveProfile
from .obfuscation import deobfuscate, obfuscate


def encode_profile(profile: SaveProfile) -> str:
    """Encode a SaveProfile to the canonical pretty-printed JSON string."""
    return json.dumps(profile.to_dict(), ensure_ascii=False, sort_keys=True, indent=2)


def decode_profile(text: str) -> SaveProfile:
    """Decode JSON text into a SaveProfile with version validation and migration hooks."""
    try:
        data: Dict[str, Any] = json.loads(text)
    except json.JSONDecodeError as e:
        raise SaveValidationError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SaveValidationError("Save payload must be a JSON object")

    try:
        version = int(data.get("format_version", FORMAT_VERSION))
    except (TypeError, ValueError) as e:
        raise SaveValidationError(f"Invalid format_version: {data.get('format_version')!r}") from e
    if version != FORMAT_VERSION:
        data = migrate_data(data, from_version=version, to_version=FORMAT_VERSION)

    return SaveProfile.from_dict(data)


def migrate_data(data: Dict[str, Any], from_version: int, to_version: int) -> Dict[str, Any]:
    """Migrate data between format versions.

    FORMAT_VERSION is 1, so no step migrations exist yet.
    """
    if from_version == to_version:
        return data
    if from_version > to_version:
        raise SaveValidationError(
            f"Save format version {from_version} is newer than supported {to_version}."
        )
    data["format_version"] = to_version
    return data


def dump_payload(profile: SaveProfile, key: Optional[str]) -> str:
    """Produce the on-disk slot payload; obfuscated when a key is given."""
    text = encode_profile(profile)
    if key:
        return obfuscate(text, key)
    return text


def load_payload(payload: str, key: Optional[str]) -> SaveProfile:
    """Reverse :func:`dump_payload`. Any decode failure becomes CorruptedSaveError."""
    text = deobfuscate(payload, key) if key else payload
    try:
        return decode_profile(text)
    except SaveValidationError as e:
        raise CorruptedSaveError(str(e)) from e
