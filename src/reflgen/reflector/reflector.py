"""Declaration walk that turns annotated cursors into registry records."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

import structlog

from ..config import BODY_MARKER
from ..errors import MissingTemplateError, UnhandledCursorError
from ..frontend.base import CursorKind, FrontendCursor, FrontendType, FrontendTypeKind
from ..models.reflection import (
    AliasInfo,
    ClassInfo,
    ClassType,
    EnumInfo,
    EnumValueInfo,
    FieldInfo,
    FunctionInfo,
    MetadataInfo,
    MethodInfo,
    TypeInfo,
    TypeInstanceInfo,
    TypeKind,
)
from ..registry.registry import Registry
from ..utils import path_is_within
from .metadata import DEFAULT_MARKER, collect_metadata, reflected_metadata
from .resolver import TypeResolver, namespace_of

logger = structlog.get_logger()

CLASS_KINDS = {CursorKind.CLASS_DECL, CursorKind.STRUCT_DECL, CursorKind.CLASS_TEMPLATE}
ALIAS_KINDS = {CursorKind.TYPE_ALIAS_DECL, CursorKind.TYPEDEF_DECL}
DEFINITION_KINDS = CLASS_KINDS | ALIAS_KINDS | {CursorKind.ENUM_DECL}


class DeclarationReflector:
    """Walks one translation unit and fills a Registry with every reflected declaration.

    Only declarations whose file lies under ``module_directory`` are considered.
    """

    def __init__(
        self,
        module_directory: Path,
        registry: Registry | None = None,
        annotation_marker: str = DEFAULT_MARKER,
        body_marker: str = BODY_MARKER,
    ) -> None:
        self.module_directory = Path(module_directory)
        self.registry = registry or Registry()
        self.resolver = TypeResolver(self.registry)
        self.annotation_marker = annotation_marker
        self.body_marker = body_marker
        # (class, generic base) -> the base specifier's own template arguments
        self._generic_base_arguments: Dict[Tuple[str, str], List[TypeInfo]] = {}

    # --- public API ---
    def reflect(self, root: FrontendCursor) -> Registry:
        self._reflect_declaration(root)
        return self.registry

    def reflect_class(self, cursor: FrontendCursor, metadata: MetadataInfo) -> ClassInfo:
        type_info = self.resolver.resolve_cursor(cursor)
        existing = self.registry.get_class(type_info.qualified_name)
        if existing is not None:
            return existing

        class_info = ClassInfo(
            type=type_info,
            metadata=metadata,
            class_type=_class_type(cursor),
            is_abstract=cursor.is_abstract,
        )
        self._reflect_members(cursor, class_info)
        self._promote_template_fields(class_info)
        self.registry.add_class(class_info)
        return class_info

    def reflect_specialization(self, frontend_type: FrontendType) -> ClassInfo:
        """Reflect a class from its type, walking the generic template for specializations."""
        type_info = self.resolver.resolve_type(frontend_type)
        existing = self.registry.get_class(type_info.qualified_name)
        if existing is not None:
            return existing

        declaration = frontend_type.canonical().declaration()
        if declaration is None:
            raise UnhandledCursorError(f"Type '{frontend_type.spelling}' has no declaration")

        class_info = ClassInfo(
            type=type_info,
            metadata=collect_metadata(declaration, self.annotation_marker),
            class_type=_class_type(declaration),
            is_abstract=declaration.is_abstract,
        )

        cursor = declaration
        specialized = type_info.template is not None and type_info.template.is_specialized
        if specialized:
            template_name = type_info.template_type_name
            template_type = self.registry.get_type(template_name)
            template_cursor = self.resolver.cursor_for(template_name)
            if template_type is None or template_cursor is None:
                raise MissingTemplateError(template_name)
            cursor = template_cursor

        self._reflect_members(cursor, class_info, specialized=specialized)
        if specialized:
            class_info.generated_body_line = None
        self._promote_template_fields(class_info)
        self.registry.add_class(class_info)
        return class_info

    def reflect_enum(self, cursor: FrontendCursor, metadata: MetadataInfo) -> EnumInfo:
        type_info = self.resolver.resolve_cursor(cursor)
        existing = self.registry.get_enum(type_info.qualified_name)
        if existing is not None:
            return existing

        enum_info = EnumInfo(type=type_info, metadata=metadata)
        for child in cursor.children():
            if child.kind != CursorKind.ENUM_CONSTANT_DECL:
                continue
            if child.spelling == self.body_marker:
                enum_info.generated_body_line = child.location[1]
                continue
            enum_info.values.append(
                EnumValueInfo(
                    name=child.spelling,
                    value=child.enum_value,
                    metadata=collect_metadata(child, self.annotation_marker),
                )
            )
        self.registry.add_enum(enum_info)
        return enum_info

    def reflect_alias(self, cursor: FrontendCursor, metadata: MetadataInfo) -> AliasInfo:
        if cursor.type is None:
            raise UnhandledCursorError(f"Alias '{cursor.spelling}' has no type")
        type_info = self.resolver.resolve_type(cursor.type)
        existing = self.registry.get_alias(type_info.qualified_name)
        if existing is not None:
            return existing

        aliased = cursor.type.canonical()
        alias_type = self.resolver.resolve_type(aliased)
        alias_class: Optional[str] = None
        alias_enum: Optional[str] = None
        if aliased.kind == FrontendTypeKind.RECORD:
            class_info = self.registry.get_class(alias_type.qualified_name)
            # An alias may be the first use of a specialization.
            if class_info is None and alias_type.template is not None:
                class_info = self.reflect_specialization(aliased)
            if class_info is not None:
                alias_class = class_info.qualified_name
        elif aliased.kind == FrontendTypeKind.ENUM:
            enum_info = self.registry.get_enum(alias_type.qualified_name)
            if enum_info is not None:
                alias_enum = enum_info.qualified_name

        alias_info = AliasInfo(
            type=type_info,
            alias_type=alias_type,
            metadata=metadata,
            alias_class=alias_class,
            alias_enum=alias_enum,
        )
        self.registry.add_alias(alias_info)
        return alias_info

    def reflect_function(self, cursor: FrontendCursor, metadata: MetadataInfo) -> FunctionInfo:
        name = cursor.spelling
        namespace = namespace_of(cursor.semantic_parent)
        qualified_name = f"{namespace}::{name}" if namespace else name
        existing = self.registry.get_function(qualified_name)
        if existing is not None:
            return existing

        return_type, argument_types = self._function_signature(cursor)
        function_info = FunctionInfo(
            name=name,
            namespace=namespace,
            return_type=return_type,
            argument_types=argument_types,
            metadata=metadata,
        )
        self.registry.add_function(function_info)
        return function_info

    # --- declaration walk ---
    def _reflect_declaration(self, cursor: FrontendCursor) -> None:
        kind = cursor.kind
        if kind in (CursorKind.TRANSLATION_UNIT, CursorKind.NAMESPACE):
            for child in cursor.children():
                self._reflect_declaration(child)
            return

        if kind in DEFINITION_KINDS:
            if not cursor.is_definition:
                return
        elif kind != CursorKind.FUNCTION_DECL:
            return

        if not self._within_module(cursor):
            return

        metadata = reflected_metadata(cursor, self.annotation_marker)
        if metadata is None:
            return

        if kind in CLASS_KINDS:
            self.reflect_class(cursor, metadata)
        elif kind == CursorKind.ENUM_DECL:
            self.reflect_enum(cursor, metadata)
        elif kind in ALIAS_KINDS:
            self.reflect_alias(cursor, metadata)
        else:
            self.reflect_function(cursor, metadata)

    def _within_module(self, cursor: FrontendCursor) -> bool:
        file_path, _ = cursor.location
        if file_path is None:
            return False
        return path_is_within(file_path, self.module_directory)

    # --- members ---
    def _reflect_members(
        self, cursor: FrontendCursor, class_info: ClassInfo, specialized: bool = False
    ) -> None:
        for child in cursor.children():
            kind = child.kind
            if (
                kind == CursorKind.CXX_METHOD
                and child.spelling == self.body_marker
                and not child.arguments()
            ):
                class_info.generated_body_line = child.location[1]
                continue

            if kind == CursorKind.CXX_BASE_SPECIFIER:
                base = self._reflect_base(child, class_info)
                class_info.base_classes.append(base.qualified_name)
                continue

            metadata = reflected_metadata(child, self.annotation_marker)
            if metadata is None:
                continue

            if kind == CursorKind.FIELD_DECL:
                # Specialized fields come from promotion of the generic ones.
                if not specialized:
                    class_info.fields.append(self._reflect_field(child, metadata))
            elif kind == CursorKind.CXX_METHOD:
                method = self._reflect_method(child, metadata)
                if specialized:
                    method = self._specialize_method(method, class_info.type)
                class_info.methods.append(method)
            else:
                raise UnhandledCursorError(
                    f"Unhandled class member type: {kind.name} '{child.spelling}' "
                    f"in {class_info.qualified_name}"
                )

    def _reflect_base(self, specifier: FrontendCursor, class_info: ClassInfo) -> ClassInfo:
        if specifier.type is None:
            raise UnhandledCursorError(f"Base specifier '{specifier.spelling}' has no type")
        base_declaration = specifier.type.canonical().declaration()
        if base_declaration is None:
            raise UnhandledCursorError(f"Base specifier '{specifier.spelling}' has no declaration")

        if base_declaration.kind == CursorKind.CLASS_TEMPLATE:
            base = self.reflect_class(
                base_declaration, collect_metadata(base_declaration, self.annotation_marker)
            )
            arguments = [self.resolver.resolve_type(t) for t in specifier.type.template_arguments()]
            if arguments:
                self._generic_base_arguments[(class_info.qualified_name, base.qualified_name)] = arguments
            return base

        if base_declaration.kind in (CursorKind.CLASS_DECL, CursorKind.STRUCT_DECL):
            return self.reflect_specialization(specifier.type.canonical())

        raise UnhandledCursorError(
            f"Unhandled base class kind {base_declaration.kind.name} for {class_info.qualified_name}"
        )

    def _reflect_field(self, cursor: FrontendCursor, metadata: MetadataInfo) -> FieldInfo:
        if cursor.type is None:
            raise UnhandledCursorError(f"Field '{cursor.spelling}' has no type")
        return FieldInfo(
            name=cursor.spelling,
            type_instance=self.resolver.resolve_instance(cursor.type),
            metadata=metadata,
        )

    def _reflect_method(self, cursor: FrontendCursor, metadata: MetadataInfo) -> MethodInfo:
        return_type, argument_types = self._function_signature(cursor)
        return MethodInfo(
            name=cursor.spelling,
            return_type=return_type,
            argument_types=argument_types,
            metadata=metadata,
        )

    def _function_signature(
        self, cursor: FrontendCursor
    ) -> Tuple[TypeInstanceInfo, List[TypeInstanceInfo]]:
        if cursor.result_type is None:
            raise UnhandledCursorError(f"Function '{cursor.spelling}' has no result type")
        return_type = self.resolver.resolve_instance(cursor.result_type)
        argument_types = []
        for argument in cursor.arguments():
            if argument.type is None:
                raise UnhandledCursorError(
                    f"Argument '{argument.spelling}' of '{cursor.spelling}' has no type"
                )
            argument_types.append(self.resolver.resolve_instance(argument.type))
        return return_type, argument_types

    def _specialize_method(self, method: MethodInfo, type_info: TypeInfo) -> MethodInfo:
        template = self.registry.get_type(type_info.template_type_name)
        parameters = template.template.arguments if template and template.template else []
        arguments = type_info.template.arguments
        return MethodInfo(
            name=method.name,
            return_type=self._substitute_instance(method.return_type, parameters, arguments),
            argument_types=[
                self._substitute_instance(arg, parameters, arguments) for arg in method.argument_types
            ],
            metadata=method.metadata,
        )

    # --- template field promotion ---
    def _promote_template_fields(self, class_info: ClassInfo) -> None:
        template = class_info.type.template
        if template is not None and template.is_generic:
            return

        if template is not None:
            generic = self._generic_class(class_info.type)
            class_info.fields.extend(self._collect_generic_fields(generic, template.arguments, set()))
            return

        for base in self.registry.get_base_classes(class_info):
            base_template = base.type.template
            if base_template is None or not base_template.is_specialized:
                continue
            generic = self._generic_class(base.type)
            class_info.fields.extend(
                self._collect_generic_fields(generic, base_template.arguments, set())
            )

    def _collect_generic_fields(
        self, generic: ClassInfo, arguments: Sequence[TypeInfo], seen: Set[str]
    ) -> List[FieldInfo]:
        """Fields of ``generic`` and its template ancestors with parameters bound to ``arguments``."""
        if generic.qualified_name in seen:
            return []
        seen.add(generic.qualified_name)

        parameters = generic.type.template.arguments if generic.type.template else []
        fields = [self._substitute_field(f, parameters, arguments) for f in generic.fields]

        for base in self.registry.get_base_classes(generic):
            base_template = base.type.template
            if base_template is None:
                continue
            if base_template.is_generic:
                base_arguments = self._generic_base_arguments.get(
                    (generic.qualified_name, base.qualified_name)
                )
                if base_arguments is None:
                    bound = list(arguments)
                else:
                    bound = [self._substitute(t, parameters, arguments) for t in base_arguments]
                fields.extend(self._collect_generic_fields(base, bound, seen))
            else:
                fields.extend(
                    self._collect_generic_fields(
                        self._generic_class(base.type), base_template.arguments, seen
                    )
                )
        return fields

    def _generic_class(self, type_info: TypeInfo) -> ClassInfo:
        template_name = type_info.template_type_name
        generic = self.registry.get_class(template_name)
        if generic is None:
            raise MissingTemplateError(template_name)
        return generic

    def _substitute_field(
        self, field_info: FieldInfo, parameters: Sequence[TypeInfo], arguments: Sequence[TypeInfo]
    ) -> FieldInfo:
        if field_info.type.kind != TypeKind.TEMPLATE:
            return field_info
        return FieldInfo(
            name=field_info.name,
            type_instance=self._substitute_instance(field_info.type_instance, parameters, arguments),
            metadata=field_info.metadata,
        )

    def _substitute_instance(
        self,
        instance: TypeInstanceInfo,
        parameters: Sequence[TypeInfo],
        arguments: Sequence[TypeInfo],
    ) -> TypeInstanceInfo:
        return TypeInstanceInfo(
            type=self._substitute(instance.type, parameters, arguments), const=instance.const
        )

    def _substitute(
        self, type_info: TypeInfo, parameters: Sequence[TypeInfo], arguments: Sequence[TypeInfo]
    ) -> TypeInfo:
        if type_info.kind != TypeKind.TEMPLATE:
            return type_info
        names = [p.qualified_name for p in parameters]
        try:
            index = names.index(type_info.qualified_name)
            return arguments[index]
        except (ValueError, IndexError):
            logger.warning(
                "template_parameter_unmatched",
                parameter=type_info.qualified_name,
                parameters=names,
            )
            return type_info


def _class_type(cursor: FrontendCursor) -> ClassType:
    kind = cursor.kind
    if kind == CursorKind.CLASS_TEMPLATE:
        kind = cursor.template_cursor_kind
    return ClassType.STRUCT if kind == CursorKind.STRUCT_DECL else ClassType.CLASS
