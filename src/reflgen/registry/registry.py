from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import (
    FieldHashCollisionError,
    FunctionHashCollisionError,
    MergeConflictError,
    MethodHashCollisionError,
    TypeHashCollisionError,
)
from ..models.reflection import (
    AliasInfo,
    ClassInfo,
    EnumInfo,
    FileObjects,
    FunctionInfo,
    MetadataInfo,
    TypeInfo,
)
from ..utils import path_is_within, same_file
from .hashing import HashFunction, crc32, find_hash_collision


class Registry:
    """All reflected entities of one file pass or one merged module, keyed by qualified name."""

    def __init__(self, hash_function: HashFunction = crc32) -> None:
        self.hash_function = hash_function
        self.types: Dict[str, TypeInfo] = {}
        self.classes: Dict[str, ClassInfo] = {}
        self.enums: Dict[str, EnumInfo] = {}
        self.aliases: Dict[str, AliasInfo] = {}
        self.functions: Dict[str, FunctionInfo] = {}
        self._type_hashes: Dict[int, str] = {}
        self._function_hashes: Dict[int, str] = {}

    # --- inserts ---
    def add_type(self, type_info: TypeInfo) -> None:
        name = type_info.qualified_name
        self._claim_hash(self._type_hashes, name, TypeHashCollisionError)
        self.types[name] = type_info

    def add_class(self, class_info: ClassInfo) -> None:
        collision = find_hash_collision((f.name for f in class_info.fields), self.hash_function)
        if collision:
            raise FieldHashCollisionError(*collision)
        collision = find_hash_collision((m.name for m in class_info.methods), self.hash_function)
        if collision:
            raise MethodHashCollisionError(*collision)
        self._ensure_type(class_info.type)
        self.classes[class_info.qualified_name] = class_info

    def add_enum(self, enum_info: EnumInfo) -> None:
        self._ensure_type(enum_info.type)
        self.enums[enum_info.qualified_name] = enum_info

    def add_alias(self, alias_info: AliasInfo) -> None:
        self._ensure_type(alias_info.type)
        self.aliases[alias_info.qualified_name] = alias_info

    def add_function(self, function_info: FunctionInfo) -> None:
        name = function_info.qualified_name
        self._claim_hash(self._function_hashes, name, FunctionHashCollisionError)
        self.functions[name] = function_info

    # --- lookups ---
    def get_type(self, name: str) -> Optional[TypeInfo]:
        return self.types.get(name)

    def get_class(self, name: str) -> Optional[ClassInfo]:
        return self.classes.get(name)

    def get_enum(self, name: str) -> Optional[EnumInfo]:
        return self.enums.get(name)

    def get_alias(self, name: str) -> Optional[AliasInfo]:
        return self.aliases.get(name)

    def get_function(self, name: str) -> Optional[FunctionInfo]:
        return self.functions.get(name)

    def get_classes(self) -> List[ClassInfo]:
        return list(self.classes.values())

    def get_enums(self) -> List[EnumInfo]:
        return list(self.enums.values())

    def get_aliases(self) -> List[AliasInfo]:
        return list(self.aliases.values())

    def get_functions(self) -> List[FunctionInfo]:
        return list(self.functions.values())

    def get_classes_within_module(self, module_directory: Path) -> List[ClassInfo]:
        return [c for c in self.classes.values() if _within(c.metadata, module_directory)]

    def get_enums_within_module(self, module_directory: Path) -> List[EnumInfo]:
        return [e for e in self.enums.values() if _within(e.metadata, module_directory)]

    def get_aliases_within_module(self, module_directory: Path) -> List[AliasInfo]:
        return [a for a in self.aliases.values() if _within(a.metadata, module_directory)]

    def get_functions_within_module(self, module_directory: Path) -> List[FunctionInfo]:
        return [f for f in self.functions.values() if _within(f.metadata, module_directory)]

    def get_base_classes(self, class_info: ClassInfo) -> List[ClassInfo]:
        bases = (self.classes.get(name) for name in class_info.base_classes)
        return [base for base in bases if base is not None]

    def get_recursive_base_classes(self, class_info: ClassInfo) -> List[ClassInfo]:
        """All ancestors, depth first in declaration order, each listed once."""
        result: List[ClassInfo] = []
        seen = {class_info.qualified_name}
        stack = list(reversed(self.get_base_classes(class_info)))
        while stack:
            base = stack.pop()
            if base.qualified_name in seen:
                continue
            seen.add(base.qualified_name)
            result.append(base)
            stack.extend(reversed(self.get_base_classes(base)))
        return result

    def get_objects_in_file(self, path: Path, reflected_only: bool = True) -> FileObjects:
        def keep(metadata: MetadataInfo) -> bool:
            if reflected_only and not metadata.is_reflected:
                return False
            return same_file(metadata.source_location.file_path, path)

        return FileObjects(
            classes=[c for c in self.classes.values() if keep(c.metadata)],
            enums=[e for e in self.enums.values() if keep(e.metadata)],
            aliases=[a for a in self.aliases.values() if keep(a.metadata)],
            functions=[f for f in self.functions.values() if keep(f.metadata)],
        )

    # --- merging ---
    def merge(self, other: "Registry", strict: bool = False) -> None:
        """Copy every entry of ``other`` into this registry; entries from ``other`` win.

        With ``strict`` a key present in both registries with different values
        raises MergeConflictError instead of being overwritten.
        """
        for category, mine, theirs in self._categories(other):
            for key, value in theirs.items():
                if strict and key in mine and mine[key] != value:
                    raise MergeConflictError(category, key)
                mine[key] = value
        self._type_hashes = {self.hash_function(name): name for name in self.types}
        self._function_hashes = {self.hash_function(name): name for name in self.functions}

    # --- helpers ---
    def _categories(self, other: "Registry") -> Iterable[Tuple[str, Dict, Dict]]:
        return (
            ("type", self.types, other.types),
            ("class", self.classes, other.classes),
            ("enum", self.enums, other.enums),
            ("alias", self.aliases, other.aliases),
            ("function", self.functions, other.functions),
        )

    def _claim_hash(self, table: Dict[int, str], name: str, error: type) -> None:
        value = self.hash_function(name)
        other = table.setdefault(value, name)
        if other != name:
            raise error(other, name, value)

    def _ensure_type(self, type_info: TypeInfo) -> None:
        if type_info.qualified_name not in self.types:
            self.add_type(type_info)


def _within(metadata: MetadataInfo, module_directory: Path) -> bool:
    return path_is_within(metadata.source_location.file_path, module_directory)
