from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import structlog

from ..errors import UnhandledCursorError
from ..frontend.base import CursorKind, FrontendCursor, FrontendType, FrontendTypeKind
from ..models.reflection import (
    TemplateInfo,
    TemplateKind,
    TypeInfo,
    TypeInstanceInfo,
    TypeKind,
)
from ..registry.registry import Registry

logger = structlog.get_logger()

_KIND_TABLE: Dict[FrontendTypeKind, TypeKind] = {
    FrontendTypeKind.BOOL: TypeKind.BOOL,
    FrontendTypeKind.CHAR_U: TypeKind.UINT8,
    FrontendTypeKind.UCHAR: TypeKind.UINT8,
    FrontendTypeKind.CHAR16: TypeKind.INT16,
    FrontendTypeKind.CHAR32: TypeKind.INT32,
    FrontendTypeKind.USHORT: TypeKind.UINT16,
    FrontendTypeKind.UINT: TypeKind.UINT32,
    FrontendTypeKind.ULONG: TypeKind.UINT32,
    FrontendTypeKind.ULONGLONG: TypeKind.UINT64,
    FrontendTypeKind.CHAR_S: TypeKind.INT8,
    FrontendTypeKind.SCHAR: TypeKind.INT8,
    FrontendTypeKind.WCHAR: TypeKind.INT16,
    FrontendTypeKind.SHORT: TypeKind.INT16,
    FrontendTypeKind.INT: TypeKind.INT32,
    FrontendTypeKind.LONG: TypeKind.INT32,
    FrontendTypeKind.LONGLONG: TypeKind.INT64,
    FrontendTypeKind.FLOAT: TypeKind.FLOAT,
    FrontendTypeKind.DOUBLE: TypeKind.DOUBLE,
    FrontendTypeKind.LONGDOUBLE: TypeKind.LONG_DOUBLE,
    FrontendTypeKind.VOID: TypeKind.VOID,
    FrontendTypeKind.RECORD: TypeKind.CLASS,
    FrontendTypeKind.ENUM: TypeKind.ENUM,
}


def classify(frontend_type: FrontendType) -> TypeKind:
    if frontend_type.is_template_parameter:
        return TypeKind.TEMPLATE
    return _KIND_TABLE.get(frontend_type.kind, TypeKind.INVALID)


def namespace_of(cursor: Optional[FrontendCursor]) -> str:
    """Enclosing namespaces of a declaration, outermost first."""
    parts: List[str] = []
    while cursor is not None and cursor.kind != CursorKind.TRANSLATION_UNIT:
        if cursor.kind == CursorKind.NAMESPACE:
            parts.append(cursor.spelling)
        cursor = cursor.semantic_parent
    return "::".join(reversed(parts))


def split_qualified(qualified_name: str, namespace: str) -> Tuple[str, str]:
    """Return (name, namespace), dropping the namespace when the spelling does not start with it."""
    if not namespace:
        return qualified_name, ""
    prefix = f"{namespace}::"
    if qualified_name.startswith(prefix):
        return qualified_name[len(prefix):], namespace
    return qualified_name, ""


class TypeResolver:
    """Maps frontend types and cursors to canonical TypeInfo records held by a Registry."""

    def __init__(self, registry: Registry) -> None:
        self.registry = registry
        self._cursors: Dict[str, FrontendCursor] = {}

    # --- public API ---
    def resolve_type(self, frontend_type: FrontendType) -> TypeInfo:
        if not frontend_type.is_template_parameter and frontend_type.kind != FrontendTypeKind.TYPEDEF:
            frontend_type = frontend_type.canonical()
        element = frontend_type.array_element()
        if element is not None:
            frontend_type = element

        declaration = frontend_type.declaration()
        name, namespace = split_qualified(frontend_type.spelling, namespace_of(declaration))
        qualified_name = f"{namespace}::{name}" if namespace else name

        existing = self.registry.get_type(qualified_name)
        if existing is not None:
            return existing

        # Typedefs keep their own name; kind and arguments come from what they name.
        underlying = frontend_type if frontend_type.is_template_parameter else frontend_type.canonical()
        arguments = [self.resolve_type(arg) for arg in underlying.template_arguments()]
        type_info = TypeInfo(
            name=name,
            namespace=namespace,
            kind=classify(underlying),
            template=TemplateInfo(TemplateKind.SPECIALIZED, arguments) if arguments else None,
        )
        self.registry.add_type(type_info)
        if declaration is not None:
            self._cursors[qualified_name] = declaration
        return type_info

    def resolve_cursor(self, cursor: FrontendCursor) -> TypeInfo:
        if cursor.type is not None:
            return self.resolve_type(cursor.type)

        if cursor.kind != CursorKind.CLASS_TEMPLATE:
            raise UnhandledCursorError(
                f"Cannot resolve a type for {cursor.kind.name} cursor '{cursor.spelling}'"
            )

        namespace = namespace_of(cursor.semantic_parent)
        name = cursor.spelling
        qualified_name = f"{namespace}::{name}" if namespace else name
        existing = self.registry.get_type(qualified_name)
        if existing is not None:
            return existing

        arguments = [self.resolve_cursor(param) for param in cursor.template_parameters()]
        type_info = TypeInfo(
            name=name,
            namespace=namespace,
            kind=TypeKind.CLASS,
            template=TemplateInfo(TemplateKind.GENERIC, arguments) if arguments else None,
        )
        self.registry.add_type(type_info)
        self._cursors[qualified_name] = cursor
        return type_info

    def resolve_instance(self, frontend_type: FrontendType) -> TypeInstanceInfo:
        return TypeInstanceInfo(type=self.resolve_type(frontend_type), const=frontend_type.is_const)

    def cursor_for(self, qualified_name: str) -> Optional[FrontendCursor]:
        """Cursor the named type was first resolved from."""
        return self._cursors.get(qualified_name)
