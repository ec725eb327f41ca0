from __future__ import annotations

from typing import Iterable, List


class ReflectionError(Exception):
    """Base class for failures raised while generating reflection data."""
    pass


class DiagnosticsError(ReflectionError):
    """Frontend diagnostics that exceeded the configured severity policy."""

    def __init__(self, messages: Iterable[str]) -> None:
        self.messages: List[str] = list(messages)
        super().__init__("\n".join(self.messages))


class HashCollisionError(ReflectionError):
    """Two different names produced the same hash."""

    entity = "name"

    def __init__(self, first: str, second: str, value: int) -> None:
        self.first = first
        self.second = second
        self.value = value
        super().__init__(
            f"{self.entity.capitalize()} hash collision between '{first}' and '{second}' ({value})"
        )


class TypeHashCollisionError(HashCollisionError):
    entity = "type"


class FunctionHashCollisionError(HashCollisionError):
    entity = "function"


class FieldHashCollisionError(HashCollisionError):
    entity = "field"


class MethodHashCollisionError(HashCollisionError):
    entity = "method"


class UnhandledCursorError(ReflectionError, NotImplementedError):
    """A declaration shape the reflector does not support."""
    pass


class MissingTemplateError(ReflectionError):
    """A specialization whose generic template was never reflected."""

    def __init__(self, template_name: str) -> None:
        self.template_name = template_name
        super().__init__(f"Template type for '{template_name}' was not found. Is it reflected?")


class RegistryFileError(ReflectionError):
    """A registry file could not be opened, read or parsed."""
    pass


class MergeConflictError(ReflectionError):
    """Strict merge found the same key with different values in two registries."""

    def __init__(self, category: str, key: str) -> None:
        self.category = category
        self.key = key
        super().__init__(f"Conflicting {category} '{key}' while merging registries")
