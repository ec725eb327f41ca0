from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from ..errors import DiagnosticsError

MAX_REPORTED_DIAGNOSTICS = 100


class CursorKind(Enum):
    """Declaration kinds the reflector distinguishes. Everything else maps to OTHER."""

    TRANSLATION_UNIT = "translation_unit"
    NAMESPACE = "namespace"
    CLASS_DECL = "class_decl"
    STRUCT_DECL = "struct_decl"
    CLASS_TEMPLATE = "class_template"
    ENUM_DECL = "enum_decl"
    ENUM_CONSTANT_DECL = "enum_constant_decl"
    TYPE_ALIAS_DECL = "type_alias_decl"
    TYPEDEF_DECL = "typedef_decl"
    FUNCTION_DECL = "function_decl"
    FIELD_DECL = "field_decl"
    CXX_METHOD = "cxx_method"
    CONSTRUCTOR = "constructor"
    DESTRUCTOR = "destructor"
    CXX_BASE_SPECIFIER = "cxx_base_specifier"
    CXX_ACCESS_SPEC_DECL = "cxx_access_spec_decl"
    ANNOTATE_ATTR = "annotate_attr"
    TEMPLATE_TYPE_PARAMETER = "template_type_parameter"
    TEMPLATE_NON_TYPE_PARAMETER = "template_non_type_parameter"
    PARM_DECL = "parm_decl"
    OTHER = "other"


class FrontendTypeKind(Enum):
    INVALID = "invalid"
    VOID = "void"
    BOOL = "bool"
    CHAR_U = "char_u"
    UCHAR = "uchar"
    CHAR16 = "char16"
    CHAR32 = "char32"
    USHORT = "ushort"
    UINT = "uint"
    ULONG = "ulong"
    ULONGLONG = "ulonglong"
    CHAR_S = "char_s"
    SCHAR = "schar"
    WCHAR = "wchar"
    SHORT = "short"
    INT = "int"
    LONG = "long"
    LONGLONG = "longlong"
    FLOAT = "float"
    DOUBLE = "double"
    LONGDOUBLE = "longdouble"
    RECORD = "record"
    ENUM = "enum"
    TYPEDEF = "typedef"
    ELABORATED = "elaborated"
    UNEXPOSED = "unexposed"
    POINTER = "pointer"
    LVALUE_REFERENCE = "lvalue_reference"
    CONSTANT_ARRAY = "constant_array"
    OTHER = "other"


class DiagnosticSeverity(IntEnum):
    IGNORED = 0
    NOTE = 1
    WARNING = 2
    ERROR = 3
    FATAL = 4


@dataclass(slots=True)
class Diagnostic:
    severity: DiagnosticSeverity
    message: str
    file: Optional[Path] = None
    line: int = 0

    def format(self) -> str:
        name = self.file.name if self.file else "<unknown>"
        return f"{name}({self.line}): {self.message}"


class FrontendType(ABC):
    """A compiler type. ``spelling`` is the fully qualified spelling without cv-qualifiers."""

    @property
    @abstractmethod
    def kind(self) -> FrontendTypeKind:
        ...

    @property
    @abstractmethod
    def spelling(self) -> str:
        ...

    @property
    @abstractmethod
    def is_const(self) -> bool:
        ...

    @property
    @abstractmethod
    def is_template_parameter(self) -> bool:
        ...

    @abstractmethod
    def canonical(self) -> "FrontendType":
        ...

    @abstractmethod
    def array_element(self) -> Optional["FrontendType"]:
        """Element type for array types, otherwise None."""

    @abstractmethod
    def declaration(self) -> Optional["FrontendCursor"]:
        ...

    @abstractmethod
    def template_arguments(self) -> List["FrontendType"]:
        ...


class FrontendCursor(ABC):
    """A node of the declaration tree."""

    @property
    @abstractmethod
    def kind(self) -> CursorKind:
        ...

    @property
    @abstractmethod
    def spelling(self) -> str:
        ...

    @property
    @abstractmethod
    def type(self) -> Optional[FrontendType]:
        """The cursor's type, or None when the frontend reports an invalid type."""

    @property
    @abstractmethod
    def is_definition(self) -> bool:
        ...

    @abstractmethod
    def children(self) -> Sequence["FrontendCursor"]:
        ...

    @property
    @abstractmethod
    def location(self) -> Tuple[Optional[Path], int]:
        """(file, line) of the cursor. The file is absolute when known."""

    @property
    @abstractmethod
    def semantic_parent(self) -> Optional["FrontendCursor"]:
        ...

    @property
    def is_abstract(self) -> bool:
        return False

    @property
    def template_cursor_kind(self) -> CursorKind:
        """For class templates, the kind of the templated declaration."""
        return CursorKind.CLASS_DECL

    @property
    def enum_value(self) -> int:
        return 0

    @property
    def result_type(self) -> Optional[FrontendType]:
        return None

    def arguments(self) -> List["FrontendCursor"]:
        return []

    def template_parameters(self) -> List["FrontendCursor"]:
        return [
            child
            for child in self.children()
            if child.kind in (CursorKind.TEMPLATE_TYPE_PARAMETER, CursorKind.TEMPLATE_NON_TYPE_PARAMETER)
        ]

    @property
    def raw_comment(self) -> Optional[str]:
        return None

    def annotations(self) -> List[str]:
        return [child.spelling for child in self.children() if child.kind == CursorKind.ANNOTATE_ATTR]


@dataclass(slots=True)
class ParsedUnit:
    root: FrontendCursor
    diagnostics: List[Diagnostic] = field(default_factory=list)


class Frontend(ABC):
    name: str

    @abstractmethod
    def parse(self, path: Path, args: Sequence[str]) -> ParsedUnit:
        """Parse one translation unit and return its root cursor plus diagnostics."""


def check_diagnostics(
    diagnostics: Iterable[Diagnostic],
    raise_warnings: bool = True,
    raise_errors: bool = True,
) -> None:
    """Raise one DiagnosticsError listing every diagnostic above the policy threshold."""
    messages: List[str] = []
    for index, diagnostic in enumerate(diagnostics):
        if index >= MAX_REPORTED_DIAGNOSTICS:
            break
        if diagnostic.severity == DiagnosticSeverity.FATAL:
            messages.append(diagnostic.format())
        elif diagnostic.severity == DiagnosticSeverity.ERROR and raise_errors:
            messages.append(diagnostic.format())
        elif diagnostic.severity == DiagnosticSeverity.WARNING and raise_warnings:
            messages.append(diagnostic.format())
    if messages:
        raise DiagnosticsError(messages)
