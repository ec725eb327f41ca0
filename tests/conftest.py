"""Shared fakes and builders for reflgen tests.

The fakes implement the frontend cursor/type interfaces so declaration trees
can be assembled in Python without libclang, the way libclang would report them.
"""
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from reflgen.frontend.base import (
    CursorKind,
    Diagnostic,
    Frontend,
    FrontendCursor,
    FrontendType,
    FrontendTypeKind,
    ParsedUnit,
)
from reflgen.models.reflection import (
    ClassInfo,
    FieldInfo,
    MetadataInfo,
    SourceLocation,
    TypeInfo,
    TypeInstanceInfo,
    TypeKind,
)

MODULE_DIR = Path("/module")
HEADER = MODULE_DIR / "Player.h"

_BUILTIN_KINDS = {
    "void": FrontendTypeKind.VOID,
    "bool": FrontendTypeKind.BOOL,
    "char": FrontendTypeKind.CHAR_S,
    "short": FrontendTypeKind.SHORT,
    "int": FrontendTypeKind.INT,
    "unsigned int": FrontendTypeKind.UINT,
    "long long": FrontendTypeKind.LONGLONG,
    "float": FrontendTypeKind.FLOAT,
    "double": FrontendTypeKind.DOUBLE,
}


def qualified_spelling(cursor: Optional[FrontendCursor]) -> str:
    parts: List[str] = []
    while cursor is not None and cursor.kind != CursorKind.TRANSLATION_UNIT:
        if cursor.spelling:
            parts.append(cursor.spelling)
        cursor = cursor.semantic_parent
    return "::".join(reversed(parts))


class FakeType(FrontendType):
    def __init__(
        self,
        kind: FrontendTypeKind,
        spelling: Optional[str] = None,
        declaration: Optional[FrontendCursor] = None,
        const: bool = False,
        template_parameter: bool = False,
        canonical: Optional["FakeType"] = None,
        element: Optional["FakeType"] = None,
        arguments: Sequence["FakeType"] = (),
    ) -> None:
        self._kind = kind
        self._spelling = spelling
        self._declaration = declaration
        self._const = const
        self._template_parameter = template_parameter
        self._canonical = canonical
        self._element = element
        self._arguments = list(arguments)

    @property
    def kind(self) -> FrontendTypeKind:
        return self._kind

    @property
    def spelling(self) -> str:
        if self._spelling is not None:
            return self._spelling
        # Resolved lazily so declarations can be nested after the type is built.
        spelling = qualified_spelling(self._declaration)
        if self._arguments:
            spelling += "<" + ", ".join(arg.spelling for arg in self._arguments) + ">"
        return spelling

    @property
    def is_const(self) -> bool:
        return self._const

    @property
    def is_template_parameter(self) -> bool:
        return self._template_parameter

    def canonical(self) -> "FakeType":
        return self._canonical.canonical() if self._canonical is not None else self

    def array_element(self) -> Optional["FakeType"]:
        return self._element

    def declaration(self) -> Optional[FrontendCursor]:
        return self._declaration

    def template_arguments(self) -> List["FakeType"]:
        return list(self._arguments)


class FakeCursor(FrontendCursor):
    def __init__(
        self,
        kind: CursorKind,
        spelling: str = "",
        type: Optional[FakeType] = None,
        children: Sequence["FakeCursor"] = (),
        annotations: Sequence[str] = (),
        file: Optional[Path] = None,
        line: int = 1,
        definition: bool = True,
        abstract: bool = False,
        template_kind: CursorKind = CursorKind.STRUCT_DECL,
        enum_value: int = 0,
        result_type: Optional[FakeType] = None,
        arguments: Sequence["FakeCursor"] = (),
        comment: Optional[str] = None,
        specialization_of: Optional["FakeCursor"] = None,
    ) -> None:
        self._kind = kind
        self._spelling = spelling
        self._type = type
        self._file = file
        self._line = line
        self._definition = definition
        self._abstract = abstract
        self._template_kind = template_kind
        self._enum_value = enum_value
        self._result_type = result_type
        self._arguments = list(arguments)
        self._comment = comment
        self._specialization_of = specialization_of
        self._parent: Optional[FakeCursor] = None
        self._children: List[FakeCursor] = []
        self.add(*[FakeCursor(CursorKind.ANNOTATE_ATTR, value) for value in annotations])
        self.add(*children)
        for argument in self._arguments:
            argument._parent = self

    def add(self, *children: "FakeCursor") -> "FakeCursor":
        for child in children:
            child._parent = self
            self._children.append(child)
        return self

    def parameter(self, name: str) -> FakeType:
        """Type of the named template parameter of a class template."""
        for child in self._children:
            if child.kind == CursorKind.TEMPLATE_TYPE_PARAMETER and child.spelling == name:
                return child.type
        raise KeyError(name)

    @property
    def kind(self) -> CursorKind:
        return self._kind

    @property
    def spelling(self) -> str:
        return self._spelling

    @property
    def type(self) -> Optional[FakeType]:
        return self._type

    @property
    def is_definition(self) -> bool:
        return self._definition

    def children(self) -> List["FakeCursor"]:
        # Implicit specializations carry the attributes of their template.
        if self._specialization_of is not None:
            return self._specialization_of.children()
        return list(self._children)

    @property
    def location(self):
        if self._specialization_of is not None:
            return self._specialization_of.location
        if self._file is None and self._parent is not None:
            return self._parent.location[0], self._line
        return self._file, self._line

    @property
    def semantic_parent(self) -> Optional["FakeCursor"]:
        if self._specialization_of is not None:
            return self._specialization_of.semantic_parent
        return self._parent

    @property
    def is_abstract(self) -> bool:
        return self._abstract

    @property
    def template_cursor_kind(self) -> CursorKind:
        return self._template_kind

    @property
    def enum_value(self) -> int:
        return self._enum_value

    @property
    def result_type(self) -> Optional[FakeType]:
        return self._result_type

    def arguments(self) -> List["FakeCursor"]:
        return list(self._arguments)

    @property
    def raw_comment(self) -> Optional[str]:
        return self._comment


class FakeFrontend(Frontend):
    name = "fake"

    def __init__(self, root: FakeCursor, diagnostics: Sequence[Diagnostic] = ()) -> None:
        self.root = root
        self.diagnostics = list(diagnostics)
        self.parsed: List[Path] = []
        self.args: List[str] = []

    def parse(self, path: Path, args: Sequence[str]) -> ParsedUnit:
        self.parsed.append(path)
        self.args = list(args)
        return ParsedUnit(root=self.root, diagnostics=list(self.diagnostics))


# --- declaration builders ---
REFLECTED = ("cpprefl",)


def builtin(spelling: str, const: bool = False) -> FakeType:
    return FakeType(_BUILTIN_KINDS[spelling], spelling, const=const)


def translation_unit(*children: FakeCursor, file: Path = HEADER) -> FakeCursor:
    return FakeCursor(CursorKind.TRANSLATION_UNIT, str(file), children=children, file=file)


def namespace(name: str, *children: FakeCursor) -> FakeCursor:
    return FakeCursor(CursorKind.NAMESPACE, name, children=children)


def record(
    name: str,
    *children: FakeCursor,
    kind: CursorKind = CursorKind.STRUCT_DECL,
    annotations: Sequence[str] = REFLECTED,
    **kwargs,
) -> FakeCursor:
    cursor = FakeCursor(kind, name, children=children, annotations=annotations, **kwargs)
    cursor._type = FakeType(FrontendTypeKind.RECORD, declaration=cursor)
    return cursor


def template_parameter(name: str) -> FakeCursor:
    cursor = FakeCursor(CursorKind.TEMPLATE_TYPE_PARAMETER, name)
    cursor._type = FakeType(FrontendTypeKind.UNEXPOSED, name, declaration=cursor, template_parameter=True)
    return cursor


def class_template(
    name: str,
    *parameters: str,
    annotations: Sequence[str] = REFLECTED,
    **kwargs,
) -> FakeCursor:
    """A class template; add members afterwards with ``.add`` using ``.parameter(name)`` types."""
    return FakeCursor(
        CursorKind.CLASS_TEMPLATE,
        name,
        children=[template_parameter(p) for p in parameters],
        annotations=annotations,
        **kwargs,
    )


def specialization(template: FakeCursor, *arguments: FakeType) -> FakeType:
    declaration = FakeCursor(CursorKind.STRUCT_DECL, template.spelling, specialization_of=template)
    return FakeType(FrontendTypeKind.RECORD, declaration=declaration, arguments=arguments)


def dependent(template: FakeCursor, *arguments: FakeType) -> FakeType:
    """A dependent ``Template<Param>`` as written inside another template."""
    return FakeType(FrontendTypeKind.UNEXPOSED, declaration=template, arguments=arguments)


def base(base_type: FakeType) -> FakeCursor:
    return FakeCursor(CursorKind.CXX_BASE_SPECIFIER, type=base_type)


def field(name: str, field_type: FakeType, annotations: Sequence[str] = REFLECTED, **kwargs) -> FakeCursor:
    return FakeCursor(CursorKind.FIELD_DECL, name, type=field_type, annotations=annotations, **kwargs)


def _parameters(argument_types: Sequence[FakeType]) -> List[FakeCursor]:
    return [
        FakeCursor(CursorKind.PARM_DECL, f"arg{index}", type=arg)
        for index, arg in enumerate(argument_types)
    ]


def method(
    name: str,
    result: FakeType,
    *argument_types: FakeType,
    annotations: Sequence[str] = REFLECTED,
    **kwargs,
) -> FakeCursor:
    return FakeCursor(
        CursorKind.CXX_METHOD,
        name,
        result_type=result,
        arguments=_parameters(argument_types),
        annotations=annotations,
        **kwargs,
    )


def function(
    name: str,
    result: FakeType,
    *argument_types: FakeType,
    annotations: Sequence[str] = REFLECTED,
    **kwargs,
) -> FakeCursor:
    return FakeCursor(
        CursorKind.FUNCTION_DECL,
        name,
        result_type=result,
        arguments=_parameters(argument_types),
        annotations=annotations,
        **kwargs,
    )


def enum(name: str, *values, annotations: Sequence[str] = REFLECTED, **kwargs) -> FakeCursor:
    """``values`` are (name, value) pairs or prebuilt enumerator cursors."""
    constants = [
        value if isinstance(value, FakeCursor) else enumerator(*value)
        for value in values
    ]
    cursor = FakeCursor(CursorKind.ENUM_DECL, name, children=constants, annotations=annotations, **kwargs)
    cursor._type = FakeType(FrontendTypeKind.ENUM, declaration=cursor)
    return cursor


def enumerator(name: str, value: int, annotations: Sequence[str] = (), **kwargs) -> FakeCursor:
    return FakeCursor(
        CursorKind.ENUM_CONSTANT_DECL, name, enum_value=value, annotations=annotations, **kwargs
    )


def alias(name: str, target: FakeType, annotations: Sequence[str] = REFLECTED, **kwargs) -> FakeCursor:
    cursor = FakeCursor(CursorKind.TYPE_ALIAS_DECL, name, annotations=annotations, **kwargs)
    cursor._type = FakeType(FrontendTypeKind.TYPEDEF, declaration=cursor, canonical=target)
    return cursor


# --- record builders ---
def metadata(file: Path = HEADER, line: int = 1, reflected: bool = True) -> MetadataInfo:
    return MetadataInfo(source_location=SourceLocation(file, line), is_reflected=reflected)


def field_info(name: str, type_name: str = "int", kind: TypeKind = TypeKind.INT32) -> FieldInfo:
    return FieldInfo(
        name=name,
        type_instance=TypeInstanceInfo(TypeInfo(type_name, kind=kind)),
        metadata=metadata(),
    )


def class_info(
    name: str,
    namespace: str = "",
    file: Path = HEADER,
    line: int = 1,
    fields: Sequence[FieldInfo] = (),
    bases: Sequence[str] = (),
    reflected: bool = True,
    body_line: Optional[int] = None,
) -> ClassInfo:
    return ClassInfo(
        type=TypeInfo(name, namespace, TypeKind.CLASS),
        metadata=metadata(file, line, reflected),
        fields=list(fields),
        base_classes=list(bases),
        generated_body_line=body_line,
    )


@pytest.fixture
def module_layout(tmp_path: Path):
    """A module directory with two headers and a separate output directory."""
    module_dir = tmp_path / "module"
    output_dir = tmp_path / "generated"
    (module_dir / "game").mkdir(parents=True)
    (module_dir / "game" / "Player.h").write_text("// player\n")
    (module_dir / "Empty.h").write_text("// nothing reflected\n")
    return module_dir.resolve(), output_dir.resolve()
