"""Annotation parsing.

Declarations are marked with clang ``annotate`` attributes:

    cpprefl                              reflected, nothing else
    cpprefl,Tag                          runtime tag
    cpprefl,Key,Value                    runtime attribute
    cpprefl-meta-runtime:Name,Value      attribute (tag when Value is empty)
    cpprefl-meta-compile:Name,Value      compile-only attribute or tag
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

from ..frontend.base import FrontendCursor
from ..models.reflection import MetadataInfo, MetadataLifetime, MetadataValue, SourceLocation

DEFAULT_MARKER = "cpprefl"

_LIFETIMES = {
    "runtime": MetadataLifetime.RUNTIME,
    "compile": MetadataLifetime.COMPILE,
}

_COMMENT_PREFIX = re.compile(r"^\s*(///?!?|/\*\*?!?|\*/|\*)?\s?")


def apply_annotation(metadata: MetadataInfo, annotation: str, marker: str = DEFAULT_MARKER) -> bool:
    """Fold one annotation string into ``metadata``. Returns False for foreign annotations."""
    if annotation == marker:
        metadata.is_reflected = True
        return True

    meta_prefix = f"{marker}-meta-"
    if annotation.startswith(meta_prefix):
        lifetime_name, sep, payload = annotation[len(meta_prefix):].partition(":")
        lifetime = _LIFETIMES.get(lifetime_name)
        if lifetime is None or not sep:
            return False
        name, _, value = payload.partition(",")
        metadata.is_reflected = True
        if value.strip():
            metadata.attributes[name] = MetadataValue(value.strip(), lifetime)
        else:
            metadata.tags.append(MetadataValue(name, lifetime))
        return True

    if annotation.startswith(f"{marker},"):
        parts = annotation.split(",", 2)
        metadata.is_reflected = True
        if len(parts) == 2:
            metadata.tags.append(MetadataValue(parts[1]))
        else:
            metadata.attributes[parts[1]] = MetadataValue(parts[2])
        return True

    return False


def clean_comment(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    lines = []
    for line in raw.strip().splitlines():
        line = line.strip()
        if line.endswith("*/"):
            line = line[:-2]
        lines.append(_COMMENT_PREFIX.sub("", line, count=1).rstrip())
    text = "\n".join(lines).strip()
    return text or None


def source_location(cursor: FrontendCursor) -> SourceLocation:
    file_path, line = cursor.location
    return SourceLocation(file_path=file_path or Path(), line=line)


def collect_metadata(cursor: FrontendCursor, marker: str = DEFAULT_MARKER) -> MetadataInfo:
    """Metadata from the direct annotation children of ``cursor``."""
    metadata = MetadataInfo(source_location=source_location(cursor))
    for annotation in cursor.annotations():
        apply_annotation(metadata, annotation, marker)
    metadata.comment = clean_comment(cursor.raw_comment)
    return metadata


def reflected_metadata(cursor: FrontendCursor, marker: str = DEFAULT_MARKER) -> Optional[MetadataInfo]:
    metadata = collect_metadata(cursor, marker)
    return metadata if metadata.is_reflected else None
