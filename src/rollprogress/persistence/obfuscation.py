"""Reversible keyed XOR + base64 transform for save payloads.

This is NOT encryption. The key ships with the game and XOR with a repeating
key is trivially reversible; the transform only keeps casual players from
editing a save file in a text editor. Do not rely on it for integrity or
secrecy.
"""
from __future__ import annotations

import base64
import binascii

from ..errors import CorruptedSaveError


def xor_bytes(data: bytes, key: bytes) -> bytes:
    if not key:
        raise ValueError("Obfuscation key must not be empty")
    klen = len(key)
    return bytes(b ^ key[i % klen] for i, b in enumerate(data))


def obfuscate(text: str, key: str) -> str:
    """UTF-8 encode, XOR with key, then base64-encode to ASCII text."""
    raw = xor_bytes(text.encode("utf-8"), key.encode("utf-8"))
    return base64.b64encode(raw).decode("ascii")


def deobfuscate(payload: str, key: str) -> str:
    """Reverse :func:`obfuscate`. Raises CorruptedSaveError on malformed input."""
    try:
        raw = base64.b64decode(payload.strip().encode("ascii"), validate=True)
    except (binascii.Error, ValueError, UnicodeEncodeError) as e:
        raise CorruptedSaveError(f"Payload is not valid base64: {e}") from e
    try:
        return xor_bytes(raw, key.encode("utf-8")).decode("utf-8")
    except UnicodeDecodeError as e:
        raise CorruptedSaveError(f"Payload does not decode with the configured key: {e}") from e
