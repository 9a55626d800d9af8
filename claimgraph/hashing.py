from __future__ import annotations

import re
import unicodedata
from hashlib import sha256

_WHITESPACE = re.compile(r"\s+")


def sha256_hex(data: bytes) -> str:
    return sha256(data).hexdigest()


def sha256_text(text: str) -> str:
    return sha256_hex(text.encode("utf-8"))


def normalize_atom_label(label: str | None) -> str:
    """Display form of a label: whitespace collapsed and trimmed, case kept."""
    return _WHITESPACE.sub(" ", label or "").strip()


def normalize_key_part(label: str | None) -> str:
    """Fingerprint form of a label: NFKC, whitespace collapsed, trimmed, lowercased."""
    text = unicodedata.normalize("NFKC", label or "")
    return _WHITESPACE.sub(" ", text).strip().lower()


def atom_key(label: str) -> str:
    return sha256_text(f"atom:{normalize_key_part(label)}")
