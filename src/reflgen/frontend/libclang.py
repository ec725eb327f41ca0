"""libclang implementation of the frontend abstraction (``clang.cindex``)."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import clang.cindex
import structlog
from clang.cindex import CursorKind as ClangCursorKind
from clang.cindex import TypeKind as ClangTypeKind

from .base import (
    CursorKind,
    Diagnostic,
    DiagnosticSeverity,
    Frontend,
    FrontendCursor,
    FrontendType,
    FrontendTypeKind,
    ParsedUnit,
)

logger = structlog.get_logger()

_CURSOR_KINDS = {
    getattr(ClangCursorKind, kind.name): kind for kind in CursorKind if kind is not CursorKind.OTHER
}

_TYPE_KIND_NAMES = {
    FrontendTypeKind.LVALUE_REFERENCE: "LVALUEREFERENCE",
    FrontendTypeKind.CONSTANT_ARRAY: "CONSTANTARRAY",
}
_TYPE_KINDS = {
    getattr(ClangTypeKind, _TYPE_KIND_NAMES.get(kind, kind.name)): kind
    for kind in FrontendTypeKind
    if kind is not FrontendTypeKind.OTHER
}

_CV_QUALIFIERS = ("const ", "volatile ")


def _strip_qualifiers(spelling: str) -> str:
    stripped = True
    while stripped:
        stripped = False
        for qualifier in _CV_QUALIFIERS:
            if spelling.startswith(qualifier):
                spelling = spelling[len(qualifier):]
                stripped = True
    return spelling


def _scope_prefix(cursor: Optional[clang.cindex.Cursor]) -> str:
    parts: List[str] = []
    while cursor is not None and cursor.kind != ClangCursorKind.TRANSLATION_UNIT:
        if cursor.spelling:
            parts.append(cursor.spelling)
        cursor = cursor.semantic_parent
    return "::".join(reversed(parts))


class ClangType(FrontendType):
    def __init__(self, raw: clang.cindex.Type) -> None:
        self.raw = raw

    @property
    def kind(self) -> FrontendTypeKind:
        return _TYPE_KINDS.get(self.raw.kind, FrontendTypeKind.OTHER)

    @property
    def spelling(self) -> str:
        if self.raw.kind == ClangTypeKind.TYPEDEF:
            # Typedef spellings are as written; qualify them through the declaration.
            decl = self.raw.get_declaration()
            if decl.kind != ClangCursorKind.NO_DECL_FOUND:
                return _scope_prefix(decl)
        return _strip_qualifiers(self.raw.spelling)

    @property
    def is_const(self) -> bool:
        return self.raw.is_const_qualified()

    @property
    def is_template_parameter(self) -> bool:
        decl = self.raw.get_declaration()
        if decl.kind == ClangCursorKind.TEMPLATE_TYPE_PARAMETER:
            return True
        return self.raw.get_canonical().spelling.startswith("type-parameter-")

    def canonical(self) -> "ClangType":
        return ClangType(self.raw.get_canonical())

    def array_element(self) -> Optional["ClangType"]:
        element = self.raw.get_array_element_type()
        if element.kind == ClangTypeKind.INVALID:
            return None
        return ClangType(element)

    def declaration(self) -> Optional["ClangCursor"]:
        decl = self.raw.get_declaration()
        if decl is None or decl.kind == ClangCursorKind.NO_DECL_FOUND:
            return None
        return ClangCursor(decl)

    def template_arguments(self) -> List["ClangType"]:
        raw = self.raw
        count = raw.get_num_template_arguments()
        if count < 0 and raw.kind == ClangTypeKind.ELABORATED:
            raw = raw.get_named_type()
            count = raw.get_num_template_arguments()
        arguments: List[ClangType] = []
        for index in range(max(count, 0)):
            argument = raw.get_template_argument_type(index)
            if argument.kind != ClangTypeKind.INVALID:
                arguments.append(ClangType(argument))
        return arguments


class ClangCursor(FrontendCursor):
    def __init__(self, raw: clang.cindex.Cursor) -> None:
        self.raw = raw

    @property
    def kind(self) -> CursorKind:
        return _CURSOR_KINDS.get(self.raw.kind, CursorKind.OTHER)

    @property
    def spelling(self) -> str:
        return self.raw.spelling

    @property
    def type(self) -> Optional[ClangType]:
        raw_type = self.raw.type
        if raw_type is None or raw_type.kind == ClangTypeKind.INVALID:
            return None
        return ClangType(raw_type)

    @property
    def is_definition(self) -> bool:
        return self.raw.is_definition()

    def children(self) -> List["ClangCursor"]:
        return [ClangCursor(child) for child in self.raw.get_children()]

    @property
    def location(self) -> Tuple[Optional[Path], int]:
        location = self.raw.location
        if location.file is None:
            return None, location.line
        return Path(location.file.name).resolve(), location.line

    @property
    def semantic_parent(self) -> Optional["ClangCursor"]:
        parent = self.raw.semantic_parent
        if parent is None:
            return None
        return ClangCursor(parent)

    @property
    def is_abstract(self) -> bool:
        if self.raw.kind in (ClangCursorKind.CLASS_DECL, ClangCursorKind.STRUCT_DECL):
            return self.raw.is_abstract_record()
        return False

    @property
    def template_cursor_kind(self) -> CursorKind:
        # Scan past the template parameter list for the class-key.
        depth = 0
        for token in self.raw.get_tokens():
            spelling = token.spelling
            if spelling == "<":
                depth += 1
            elif spelling == ">":
                depth -= 1
            elif depth == 0 and spelling == "struct":
                return CursorKind.STRUCT_DECL
            elif depth == 0 and spelling == "class":
                return CursorKind.CLASS_DECL
        return CursorKind.CLASS_DECL

    @property
    def enum_value(self) -> int:
        return self.raw.enum_value

    @property
    def result_type(self) -> Optional[ClangType]:
        result = self.raw.result_type
        if result is None or result.kind == ClangTypeKind.INVALID:
            return None
        return ClangType(result)

    def arguments(self) -> List["ClangCursor"]:
        return [ClangCursor(arg) for arg in self.raw.get_arguments()]

    @property
    def raw_comment(self) -> Optional[str]:
        return self.raw.raw_comment


class ClangFrontend(Frontend):
    name = "clang"

    def __init__(self, library_file: Optional[Path] = None) -> None:
        if library_file is not None and not clang.cindex.Config.loaded:
            clang.cindex.Config.set_library_file(str(library_file))
        self.index = clang.cindex.Index.create()

    def parse(self, path: Path, args: Sequence[str]) -> ParsedUnit:
        if not path.exists():
            raise FileNotFoundError(f"Entrypoint file not found: {path}")
        logger.debug("parse_translation_unit", path=str(path), args=list(args))
        unit = self.index.parse(
            str(path),
            args=list(args),
            options=clang.cindex.TranslationUnit.PARSE_SKIP_FUNCTION_BODIES,
        )
        diagnostics = [
            Diagnostic(
                severity=DiagnosticSeverity(diag.severity),
                message=diag.spelling,
                file=Path(diag.location.file.name) if diag.location.file else None,
                line=diag.location.line,
            )
            for diag in unit.diagnostics
        ]
        return ParsedUnit(root=ClangCursor(unit.cursor), diagnostics=diagnostics)
