"""Companion C++ emitted from a Registry.

Per input file a ``.reflgen.h`` declares the ``cpprefl::GetReflected*``
specializations and one body macro per class carrying the generated-body
marker; the ``.reflgen.cpp`` registers fields, enum values, function
signatures and metadata with the runtime registry, plus the dynamic array
functions of ``std::vector`` fields. Methods stay in the registry only.

Per module a ``.reflmodule.cpp`` touches every reflected object once so
registration happens at startup.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..config import BUILD_REFLECTION_DEFINE
from ..models.reflection import (
    ClassInfo,
    ClassType,
    EnumInfo,
    FieldInfo,
    FileObjects,
    FunctionInfo,
    MetadataInfo,
    TypeInfo,
)
from ..registry.files import (
    GENERATED_HEADER_EXTENSION,
    GENERATED_SOURCE_EXTENSION,
    MODULE_HEADER_EXTENSION,
    MODULE_SOURCE_EXTENSION,
    source_to_generated,
)
from ..registry.registry import Registry
from .writer import CppWriter

RUNTIME_NAMESPACE = "cpprefl"
PRIVATE_NAMESPACE = "CppReflPrivate"
DYNAMIC_ARRAY_PREFIX = "std::vector<"
MACRO_PREFIX = "CPPREFL_INTERNAL_REFLECTION"
BUILD_REFLECTION_MACRO = BUILD_REFLECTION_DEFINE.split("=", 1)[0]


@dataclass(slots=True)
class GeneratedFile:
    path: Path
    text: str


def body_macro_name(class_info: ClassInfo) -> str:
    location = class_info.metadata.source_location
    return f"{MACRO_PREFIX}_{location.stem}{class_info.generated_body_line}"


def include_path(source: Path, module_directory: Path) -> str:
    return Path(os.path.relpath(Path(source).resolve(), Path(module_directory).resolve())).as_posix()


def _strip_quotes(value: str) -> str:
    return value.strip('"')


def attribute_literal(value: str) -> str:
    """Quote attribute values that are neither quoted nor numeric."""
    if value.startswith('"'):
        return value
    try:
        float(value)
        return value
    except ValueError:
        return f'"{value}"'


def write_metadata(writer: CppWriter, name: str, metadata: MetadataInfo) -> tuple[str, str]:
    """Emit tag/attribute arrays for ``metadata`` and return the expressions referring to them."""
    tags_expr = f"{RUNTIME_NAMESPACE}::MetadataTagView()"
    attributes_expr = f"{RUNTIME_NAMESPACE}::MetadataAttributeView()"

    tags = metadata.runtime_tags
    if tags:
        values = ",".join(f'"{_strip_quotes(t.value)}"' for t in tags)
        writer.write_line(
            f"static const std::array<{RUNTIME_NAMESPACE}::MetadataTag, {len(tags)}> {name}Tags = {{{values}}};"
        )
        tags_expr = f"{name}Tags"

    attributes = metadata.runtime_attributes
    if attributes:
        pairs = ",".join(
            f'std::make_pair("{key}", {RUNTIME_NAMESPACE}::MetadataAttributeValue({attribute_literal(v.value)}))'
            for key, v in attributes.items()
        )
        writer.write_line(
            f"static const std::array<{RUNTIME_NAMESPACE}::MetadataAttribute, {len(attributes)}> "
            f"{name}Attributes = {{{pairs}}};"
        )
        attributes_expr = f"{name}Attributes"

    return tags_expr, attributes_expr


def reflected_type_expr(type_info: TypeInfo) -> str:
    if type_info.is_primitive:
        return f"{RUNTIME_NAMESPACE}::GetReflectedType<{type_info.qualified_name}>()"
    return (
        f'{PRIVATE_NAMESPACE}::MaybeCreateReflectedType<{type_info.cpp_name}>'
        f'("{type_info.qualified_name}")'
    )


def is_dynamic_array(field_info: FieldInfo) -> bool:
    return field_info.type.is_templated and field_info.type.qualified_name.startswith(DYNAMIC_ARRAY_PREFIX)


class FileCodeGenerator:
    def __init__(self, registry: Registry, module_directory: Path, output_directory: Path) -> None:
        self.registry = registry
        self.module_directory = Path(module_directory)
        self.output_directory = Path(output_directory)

    # --- public API ---
    def generate(self, input_file: Path) -> List[GeneratedFile]:
        objects = self.registry.get_objects_in_file(input_file)
        header = CppWriter()
        source = CppWriter()
        if objects.any():
            self._write_header(header, objects)
            self._write_source(source, input_file, objects)
        return [
            GeneratedFile(self._output(input_file, GENERATED_HEADER_EXTENSION), header.text()),
            GeneratedFile(self._output(input_file, GENERATED_SOURCE_EXTENSION), source.text()),
        ]

    # --- header ---
    def _write_header(self, writer: CppWriter, objects: FileObjects) -> None:
        writer.write_line("#pragma once")
        writer.write_line()
        writer.include("CppReflStatics.h")
        writer.write_line()

        for class_info in objects.classes:
            if class_info.type.is_templated:
                # Generic templates are only forward declared.
                if class_info.type.template.is_generic:
                    writer.forward_declare(class_info)
                continue
            writer.forward_declare(class_info)
            with writer.namespace(RUNTIME_NAMESPACE):
                name = class_info.type.globally_qualified_name
                writer.write_line("template <>")
                writer.write_line(f"const TypeInfo& GetReflectedType<{name}>();")
                writer.write_line()
                writer.write_line("template <>")
                writer.write_line(f"const ClassInfo& GetReflectedClass<{name}>();")

        for enum_info in objects.enums:
            writer.forward_declare_enum(enum_info)
            with writer.namespace(RUNTIME_NAMESPACE):
                name = enum_info.type.globally_qualified_name
                writer.write_line("template <>")
                writer.write_line(f"const TypeInfo& GetReflectedType<{name}>();")
                writer.write_line()
                writer.write_line("template <>")
                writer.write_line(f"const EnumInfo& GetReflectedEnum<{name}>();")

        for function_info in objects.functions:
            writer.forward_declare_function(function_info)
            with writer.namespace(RUNTIME_NAMESPACE):
                writer.write_line("template <>")
                writer.write_line(
                    f"const FunctionInfo& GetReflectedFunction<&{function_info.globally_qualified_name}>();"
                )

        for class_info in objects.classes:
            if class_info.generated_body_line is not None:
                self._write_body_macro(writer, class_info)

    def _write_body_macro(self, writer: CppWriter, class_info: ClassInfo) -> None:
        macro = body_macro_name(class_info)
        writer.write_line()
        writer.write_line(f"// {class_info.qualified_name} class declaration")
        writer.write_line(f"#if !{BUILD_REFLECTION_MACRO}")
        writer.write_line(f"#define {macro}()\\")
        with writer.postfix("\\"), writer.indented(2):
            name = class_info.type.name
            writer.write_line(
                f"friend const {RUNTIME_NAMESPACE}::TypeInfo& {RUNTIME_NAMESPACE}::GetReflectedType<{name}>();"
            )
            writer.write_line(
                f"friend const {RUNTIME_NAMESPACE}::ClassInfo& {RUNTIME_NAMESPACE}::GetReflectedClass<{name}>();"
            )
            writer.write_line("public:")
            with writer.indented():
                self._write_class_accessors(writer, class_info)
        writer.write_line()
        writer.write_line("#else")
        writer.write_line(f"#define {macro}()")
        writer.write_line("#endif")

    def _write_class_accessors(self, writer: CppWriter, class_info: ClassInfo) -> None:
        """``Super``, the static getters and, for classes, their virtual counterparts."""
        ns = RUNTIME_NAMESPACE
        name = class_info.type.name
        super_class = self._super_class(class_info)
        if super_class is not None:
            writer.write_line(f"using Super = {super_class.type.globally_qualified_name};")
        writer.write_line(
            f"static inline const {ns}::TypeInfo& StaticReflectedType() "
            f"{{ return {ns}::GetReflectedType<{name}>(); }}"
        )
        writer.write_line(
            f"static inline const {ns}::ClassInfo& StaticReflectedClass() "
            f"{{ return {ns}::GetReflectedClass<{name}>(); }}"
        )
        # Structs are plain data and must not gain a vtable.
        if class_info.class_type is ClassType.CLASS:
            writer.write_line(
                f"virtual const {ns}::TypeInfo& GetReflectedType()const "
                f"{{ return {ns}::GetReflectedType<{name}>(); }}"
            )
            writer.write_line(
                f"virtual const {ns}::ClassInfo& GetReflectedClass()const "
                f"{{ return {ns}::GetReflectedClass<{name}>(); }}"
            )
            writer.write_line(
                f"virtual const {ns}::Name GetClassName()const {{ return {ns}::GetTypeName<{name}>(); }}"
            )

    def _super_class(self, class_info: ClassInfo) -> Optional[ClassInfo]:
        base = next((b for b in self.registry.get_base_classes(class_info) if not b.is_abstract), None)
        # A generic base cannot be spelled without the deriving template's arguments.
        if base is None or not base.type.is_instantiable:
            return None
        return base

    # --- source ---
    def _write_source(self, writer: CppWriter, input_file: Path, objects: FileObjects) -> None:
        writer.include(include_path(input_file, self.module_directory))
        writer.include("array", system=True)
        writer.include("Reflection/ClassInfo.h")
        writer.include("Reflection/EnumInfo.h")
        writer.include("Reflection/FieldInfo.h")
        writer.include("Reflection/FunctionInfo.h")
        writer.include("Reflection/Registry.h")
        writer.include("Reflection/TypeInfo.h")
        writer.write_line()

        classes = [c for c in objects.classes if not c.type.is_templated]
        with writer.namespace(RUNTIME_NAMESPACE):
            for class_info in classes:
                self._write_class(writer, class_info)
            for enum_info in objects.enums:
                self._write_enum(writer, enum_info)
            for function_info in objects.functions:
                self._write_function(writer, function_info)

        dynamic_arrays = [(c, f) for c in classes for f in c.fields if is_dynamic_array(f)]
        if dynamic_arrays:
            writer.write_line()
            with writer.namespace(PRIVATE_NAMESPACE):
                for class_info, field_info in dynamic_arrays:
                    self._write_dynamic_array(writer, class_info, field_info)

    def _write_class(self, writer: CppWriter, class_info: ClassInfo) -> None:
        name = class_info.type.globally_qualified_name
        writer.write_line("template <>")
        with writer.function(f"const TypeInfo& GetReflectedType<{name}>()"):
            writer.write_line(
                f'static auto& type = Registry::GetSystemRegistry().EmplaceType('
                f'"{class_info.qualified_name}", TypeKind::Class, sizeof({name}));'
            )
            writer.write_line("return type;")
        writer.write_line()

        writer.write_line("template <>")
        with writer.function(f"const ClassInfo& GetReflectedClass<{name}>()"):
            tags, attributes = write_metadata(writer, "Class", class_info.metadata)
            fields = "FieldView()"
            if class_info.fields:
                field_metadata = [write_metadata(writer, f.name, f.metadata) for f in class_info.fields]
                with writer.block(
                    f"static const std::array<FieldInfo, {len(class_info.fields)}> Fields =",
                    "{",
                    "};",
                ):
                    for field_info, (field_tags, field_attributes) in zip(class_info.fields, field_metadata):
                        writer.write_line(
                            f"FieldInfo(MakeTypeInstance<decltype({name}::{field_info.name})>"
                            f"({reflected_type_expr(field_info.type)}), offsetof({name}, {field_info.name}), "
                            f'"{field_info.name}", {field_tags}, {field_attributes}),'
                        )
                fields = "Fields"
            bases = ", ".join(
                f"&GetReflectedClass<{base.type.globally_qualified_name}>()"
                for base in self.registry.get_base_classes(class_info)
                if base.type.is_instantiable and base.metadata.is_reflected
            )
            writer.write_line(
                f"static auto& classInfo = Registry::GetSystemRegistry().EmplaceClass("
                f"GetReflectedType<{name}>(), {fields}, {{{bases}}}, {tags}, {attributes});"
            )
            writer.write_line("return classInfo;")
        writer.write_line()

    def _write_enum(self, writer: CppWriter, enum_info: EnumInfo) -> None:
        name = enum_info.type.globally_qualified_name
        writer.write_line("template <>")
        with writer.function(f"const TypeInfo& GetReflectedType<{name}>()"):
            writer.write_line(
                f'static auto& type = Registry::GetSystemRegistry().EmplaceType('
                f'"{enum_info.qualified_name}", TypeKind::Enum, sizeof({name}));'
            )
            writer.write_line("return type;")
        writer.write_line()

        writer.write_line("template <>")
        with writer.function(f"const EnumInfo& GetReflectedEnum<{name}>()"):
            tags, attributes = write_metadata(writer, "Enum", enum_info.metadata)
            with writer.block(
                f"static const std::array<EnumValueInfo, {len(enum_info.values)}> Values =", "{", "};"
            ):
                for value in enum_info.values:
                    writer.write_line(f'EnumValueInfo("{value.name}", {value.value}),')
            writer.write_line(
                f"static auto& enumInfo = Registry::GetSystemRegistry().EmplaceEnum("
                f"GetReflectedType<{name}>(), Values, {tags}, {attributes});"
            )
            writer.write_line("return enumInfo;")
        writer.write_line()

    def _write_function(self, writer: CppWriter, function_info: FunctionInfo) -> None:
        name = function_info.globally_qualified_name
        writer.write_line("template <>")
        with writer.function(f"const FunctionInfo& GetReflectedFunction<&{name}>()"):
            tags, attributes = write_metadata(writer, "Function", function_info.metadata)
            arguments = "FunctionArgTypesView()"
            if function_info.argument_types:
                with writer.block(
                    f"static const std::array<const TypeInfo*, {len(function_info.argument_types)}> functionArgs =",
                    "{",
                    "};",
                ):
                    for argument in function_info.argument_types:
                        writer.write_line(f"&{reflected_type_expr(argument.type)},")
                arguments = "FunctionArgTypesView(functionArgs)"
            writer.write_line(
                f"static auto& functionInfo = Registry::GetSystemRegistry().EmplaceFunction("
                f'"{function_info.qualified_name}", (void*)&{name}, '
                f"{reflected_type_expr(function_info.return_type.type)}, {arguments}, {tags}, {attributes});"
            )
            writer.write_line("return functionInfo;")
        writer.write_line()

    def _write_dynamic_array(self, writer: CppWriter, class_info: ClassInfo, field_info: FieldInfo) -> None:
        element = field_info.type.template.arguments[0]
        variable = f"{class_info.type.flattened_name}{field_info.name}_DynamicArray"
        functions = (
            f"{RUNTIME_NAMESPACE}::StdVectorFunctionsFactory::Create<{element.cpp_name}>"
            f'("{element.qualified_name}")'
        )
        writer.write_line(
            f"const auto& {variable} = {RUNTIME_NAMESPACE}::Registry::GetSystemRegistry()"
            f'.AddDynamicArrayFunctions("{field_info.type.qualified_name}", {functions});'
        )

    def _output(self, input_file: Path, extension: str) -> Path:
        return source_to_generated(input_file, self.module_directory, self.output_directory, extension)


class ModuleCodeGenerator:
    def __init__(
        self, registry: Registry, module_name: str, module_directory: Path, output_directory: Path
    ) -> None:
        self.registry = registry
        self.module_name = module_name
        self.module_directory = Path(module_directory)
        self.output_directory = Path(output_directory)

    @property
    def entry_point(self) -> str:
        return f"RegisterModule_{self.module_name}"

    def generate(self) -> List[GeneratedFile]:
        classes = [
            c
            for c in self.registry.get_classes_within_module(self.module_directory)
            if c.type.is_instantiable and c.metadata.is_reflected and c.generated_body_line is not None
        ]
        enums = [
            e for e in self.registry.get_enums_within_module(self.module_directory) if e.metadata.is_reflected
        ]

        header = CppWriter()
        header.write_line("#pragma once")
        header.write_line()
        with header.namespace(RUNTIME_NAMESPACE):
            header.write_line(f"void {self.entry_point}();")

        source = CppWriter()
        source.include(f"{self.module_name}{MODULE_HEADER_EXTENSION}")
        includes = sorted(
            {include_path(o.metadata.source_location.file_path, self.module_directory) for o in [*classes, *enums]}
        )
        for include in includes:
            source.include(include)
        source.write_line()
        with source.namespace(RUNTIME_NAMESPACE):
            with source.function(f"void {self.entry_point}()"):
                for class_info in classes:
                    source.write_line(f"GetReflectedClass<{class_info.type.globally_qualified_name}>();")
                for enum_info in enums:
                    source.write_line(f"GetReflectedEnum<{enum_info.type.globally_qualified_name}>();")

        return [
            GeneratedFile(self.output_directory / f"{self.module_name}{MODULE_HEADER_EXTENSION}", header.text()),
            GeneratedFile(self.output_directory / f"{self.module_name}{MODULE_SOURCE_EXTENSION}", source.text()),
        ]
