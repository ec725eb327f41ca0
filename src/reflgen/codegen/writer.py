from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List

from ..models.reflection import ClassInfo, EnumInfo, FunctionInfo


class CppWriter:
    """Line buffer for generated C++ with indentation and scoped blocks."""

    def __init__(self, indent: str = "\t") -> None:
        self._indent = indent
        self._depth = 0
        self._postfix = ""
        self._lines: List[str] = []

    def write_line(self, text: str = "") -> None:
        if not text:
            self._lines.append(self._postfix.strip())
            return
        for line in text.splitlines():
            self._lines.append(f"{self._indent * self._depth}{line}{self._postfix}")

    def include(self, header: str, system: bool = False) -> None:
        if system:
            self.write_line(f"#include <{header}>")
        else:
            self.write_line(f'#include "{header}"')

    def forward_declare(self, class_info: ClassInfo) -> None:
        with self.namespace(class_info.type.namespace):
            self.write_line(class_info.forward_declaration)

    def forward_declare_enum(self, enum_info: EnumInfo) -> None:
        with self.namespace(enum_info.type.namespace):
            self.write_line(f"enum class {enum_info.type.name};")

    def forward_declare_function(self, function_info: FunctionInfo) -> None:
        with self.namespace(function_info.namespace):
            self.write_line(function_info.declaration)

    @contextmanager
    def indented(self, levels: int = 1) -> Iterator[None]:
        self._depth += levels
        try:
            yield
        finally:
            self._depth -= levels

    @contextmanager
    def block(self, opener: str, open_text: str = "{", close_text: str = "}") -> Iterator[None]:
        self.write_line(opener)
        self.write_line(open_text)
        with self.indented():
            yield
        self.write_line(close_text)

    @contextmanager
    def namespace(self, name: str) -> Iterator[None]:
        if not name:
            yield
            return
        with self.block(f"namespace {name}"):
            yield

    @contextmanager
    def function(self, signature: str) -> Iterator[None]:
        with self.block(signature):
            yield

    @contextmanager
    def postfix(self, suffix: str) -> Iterator[None]:
        """Append ``suffix`` to every line written inside, e.g. macro continuations."""
        previous = self._postfix
        self._postfix = suffix
        try:
            yield
        finally:
            self._postfix = previous

    def is_empty(self) -> bool:
        return not any(line.strip() for line in self._lines)

    def text(self) -> str:
        if self.is_empty():
            return ""
        return "\n".join(self._lines) + "\n"
