"""Reflection records produced by the reflector and stored in a Registry.

Cross references between records (base classes, alias targets) are kept as
qualified names and resolved against a Registry on demand, so a record never
holds a pointer into another file's registry.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum, IntFlag
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from ..registry.registry import Registry


class TypeKind(IntEnum):
    INVALID = 0
    BOOL = 1
    UINT8 = 2
    INT8 = 3
    UINT16 = 4
    INT16 = 5
    UINT32 = 6
    INT32 = 7
    UINT64 = 8
    INT64 = 9
    FLOAT = 10
    DOUBLE = 11
    LONG_DOUBLE = 12
    ENUM = 13
    CLASS = 14
    VOID = 15
    TEMPLATE = 16


_SIGNED_KINDS = frozenset(
    {TypeKind.INT8, TypeKind.INT16, TypeKind.INT32, TypeKind.INT64}
)
_UNSIGNED_KINDS = frozenset(
    {TypeKind.UINT8, TypeKind.UINT16, TypeKind.UINT32, TypeKind.UINT64}
)
_REAL_KINDS = frozenset({TypeKind.FLOAT, TypeKind.DOUBLE, TypeKind.LONG_DOUBLE})


class TemplateKind(str, Enum):
    GENERIC = "generic"
    SPECIALIZED = "specialized"


class ClassType(str, Enum):
    STRUCT = "struct"
    CLASS = "class"


class MetadataLifetime(IntFlag):
    """Where a tag or attribute is visible. Runtime metadata is also visible at compile time."""

    COMPILE = 1
    RUNTIME = 3


class NameMixin:
    """Qualified-name helpers for records carrying ``name`` and ``namespace``."""

    __slots__ = ()

    name: str
    namespace: str

    def namespaces(self) -> List[str]:
        # Only the namespace is split; "Outer::Inner" in the name is a nested class.
        if not self.namespace:
            return []
        return self.namespace.split("::")

    def is_in_global_namespace(self) -> bool:
        return not self.namespace

    @property
    def qualified_name(self) -> str:
        if self.is_in_global_namespace():
            return self.name
        return f"{self.namespace}::{self.name}"

    @property
    def globally_qualified_name(self) -> str:
        return f"::{self.qualified_name}"

    @property
    def flattened_name(self) -> str:
        return self.qualified_name.replace("::", "_")


@dataclass(slots=True)
class TemplateInfo:
    kind: TemplateKind
    arguments: List["TypeInfo"]

    def __post_init__(self) -> None:
        if not self.arguments:
            raise ValueError("A template needs at least one argument")

    @property
    def is_generic(self) -> bool:
        return self.kind is TemplateKind.GENERIC

    @property
    def is_specialized(self) -> bool:
        return self.kind is TemplateKind.SPECIALIZED

    @property
    def declaration_signature(self) -> str:
        params = ", ".join(f"typename {arg.name}" for arg in self.arguments)
        return f"template <{params}>"

    @property
    def instantiation_signature(self) -> str:
        return "<" + ", ".join(arg.qualified_name for arg in self.arguments) + ">"


@dataclass(slots=True)
class TypeInfo(NameMixin):
    name: str
    namespace: str = ""
    kind: TypeKind = TypeKind.INVALID
    template: Optional[TemplateInfo] = None

    @property
    def is_primitive(self) -> bool:
        return TypeKind.BOOL <= self.kind <= TypeKind.LONG_DOUBLE

    @property
    def is_integer(self) -> bool:
        return self.kind in _SIGNED_KINDS or self.kind in _UNSIGNED_KINDS

    @property
    def is_real(self) -> bool:
        return self.kind in _REAL_KINDS

    @property
    def is_signed(self) -> bool:
        return self.kind in _SIGNED_KINDS or self.kind in _REAL_KINDS

    @property
    def is_unsigned(self) -> bool:
        return self.kind in _UNSIGNED_KINDS

    @property
    def is_enum(self) -> bool:
        return self.kind == TypeKind.ENUM

    @property
    def is_class(self) -> bool:
        return self.kind == TypeKind.CLASS

    @property
    def is_templated(self) -> bool:
        return self.template is not None

    @property
    def is_instantiable(self) -> bool:
        return self.template is None or self.template.is_specialized

    @property
    def cpp_name(self) -> str:
        # Builtins, pointers and template parameters cannot be globally qualified.
        if self.kind in (TypeKind.CLASS, TypeKind.ENUM):
            return self.globally_qualified_name
        return self.qualified_name

    @property
    def template_type_name(self) -> Optional[str]:
        """Qualified name of the generic template this type belongs to."""
        if self.template is None:
            return None
        if self.template.is_generic:
            return self.qualified_name
        return self.qualified_name.split("<", 1)[0]


@dataclass(slots=True)
class TypeInstanceInfo:
    type: TypeInfo
    const: bool = False

    @property
    def signature(self) -> str:
        prefix = "const " if self.const else ""
        return f"{prefix}{self.type.cpp_name}"


@dataclass(slots=True)
class MetadataValue:
    value: str
    lifetime: MetadataLifetime = MetadataLifetime.RUNTIME


@dataclass(slots=True)
class SourceLocation:
    file_path: Path
    line: int = 0

    @property
    def ide_diagnostic(self) -> str:
        return f"{self.file_path}({self.line}):"

    @property
    def stem(self) -> str:
        return self.file_path.stem


@dataclass(slots=True)
class MetadataInfo:
    source_location: SourceLocation
    is_reflected: bool = False
    tags: List[MetadataValue] = field(default_factory=list)
    attributes: Dict[str, MetadataValue] = field(default_factory=dict)
    comment: Optional[str] = None

    @property
    def compile_tags(self) -> List[MetadataValue]:
        return [t for t in self.tags if t.lifetime & MetadataLifetime.COMPILE]

    @property
    def runtime_tags(self) -> List[MetadataValue]:
        return [t for t in self.tags if t.lifetime == MetadataLifetime.RUNTIME]

    @property
    def compile_attributes(self) -> Dict[str, MetadataValue]:
        return {k: v for k, v in self.attributes.items() if v.lifetime & MetadataLifetime.COMPILE}

    @property
    def runtime_attributes(self) -> Dict[str, MetadataValue]:
        return {
            k: v for k, v in self.attributes.items() if v.lifetime == MetadataLifetime.RUNTIME
        }

    def has_tag(self, tag: str) -> bool:
        return any(t.value == tag for t in self.tags)


@dataclass(slots=True)
class FieldInfo:
    name: str
    type_instance: TypeInstanceInfo
    metadata: MetadataInfo

    @property
    def type(self) -> TypeInfo:
        return self.type_instance.type


@dataclass(slots=True)
class FunctionInfoBase:
    name: str
    return_type: TypeInstanceInfo
    metadata: MetadataInfo
    argument_types: List[TypeInstanceInfo] = field(default_factory=list)

    @property
    def signature(self) -> str:
        args = ", ".join(arg.signature for arg in self.argument_types)
        return f"{self.return_type.signature}({args})"


@dataclass(slots=True)
class MethodInfo(FunctionInfoBase):
    pass


@dataclass(slots=True)
class FunctionInfo(NameMixin, FunctionInfoBase):
    namespace: str = ""

    @property
    def declaration(self) -> str:
        args = ", ".join(arg.signature for arg in self.argument_types)
        return f"{self.return_type.signature} {self.name}({args});"


@dataclass(slots=True)
class ClassInfo:
    type: TypeInfo
    metadata: MetadataInfo
    class_type: ClassType = ClassType.CLASS
    is_abstract: bool = False
    fields: List[FieldInfo] = field(default_factory=list)
    methods: List[MethodInfo] = field(default_factory=list)
    base_classes: List[str] = field(default_factory=list)  # qualified names
    generated_body_line: Optional[int] = None

    @property
    def qualified_name(self) -> str:
        return self.type.qualified_name

    @property
    def forward_declaration(self) -> str:
        if self.type.template is not None and self.type.template.is_generic:
            return f"{self.type.template.declaration_signature} {self.class_type.value} {self.type.name};"
        return f"{self.class_type.value} {self.type.name};"


@dataclass(slots=True)
class EnumValueInfo:
    name: str
    value: int
    metadata: MetadataInfo


@dataclass(slots=True)
class EnumInfo:
    type: TypeInfo
    metadata: MetadataInfo
    values: List[EnumValueInfo] = field(default_factory=list)
    generated_body_line: Optional[int] = None

    @property
    def qualified_name(self) -> str:
        return self.type.qualified_name


@dataclass(slots=True)
class AliasInfo:
    type: TypeInfo
    alias_type: TypeInfo
    metadata: MetadataInfo
    alias_class: Optional[str] = None  # qualified names
    alias_enum: Optional[str] = None

    @property
    def qualified_name(self) -> str:
        return self.type.qualified_name

    def get_underlying_class(self, registry: "Registry") -> Optional[ClassInfo]:
        """Follow alias-of-alias links until a class is reached."""
        return self._follow(registry, lambda reg, name: reg.get_class(name), "alias_class")

    def get_underlying_enum(self, registry: "Registry") -> Optional[EnumInfo]:
        return self._follow(registry, lambda reg, name: reg.get_enum(name), "alias_enum")

    def _follow(self, registry, lookup, target_attr):
        seen = set()
        current: Optional[AliasInfo] = self
        while current is not None and current.qualified_name not in seen:
            seen.add(current.qualified_name)
            target = getattr(current, target_attr)
            if target is not None:
                found = lookup(registry, target)
                if found is not None:
                    return found
            current = registry.get_alias(current.alias_type.qualified_name)
        return None


@dataclass(slots=True)
class FileObjects:
    classes: List[ClassInfo] = field(default_factory=list)
    enums: List[EnumInfo] = field(default_factory=list)
    aliases: List[AliasInfo] = field(default_factory=list)
    functions: List[FunctionInfo] = field(default_factory=list)

    def any(self) -> bool:
        return bool(self.classes or self.enums or self.aliases or self.functions)
