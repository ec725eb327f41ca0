"""Configuration for reflgen.

Settings mirror the inputs of one reflection pass:
- module_name / module_directory: the module being reflected and its root
- output_directory: where generated code and registries are written
- include_paths / definitions / clang_args: forwarded to the frontend
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

BODY_MARKER = "__CppReflGeneratedReflectionCodeMarker"
BUILD_REFLECTION_DEFINE = "CPPREFL_BUILD_REFLECTION()=1"

DEFAULT_CLANG_ARGS = [
    "-Wall",
    "-Wno-c++98-compat",
    "-Wno-c++98-compat-pedantic",
    "-Wno-newline-eof",
    "-Wno-pragma-once-outside-header",
    "-Wno-unused-variable",
    "--language=c++",
    "-std=c++20",
]


class Settings(BaseModel):
    """reflgen settings."""

    module_name: str = Field(default="Module", description="Name of the reflected module")
    module_directory: Path = Field(
        default_factory=lambda: Path(".").resolve(),
        description="Root of the module; declarations outside it are never reflected",
    )
    output_directory: Path = Field(
        default_factory=lambda: Path("generated").resolve(),
        description="Directory receiving generated code and registries",
    )
    include_paths: List[Path] = Field(default_factory=list)
    definitions: List[str] = Field(default_factory=list)
    clang_args: List[str] = Field(default_factory=lambda: list(DEFAULT_CLANG_ARGS))
    raise_warnings: bool = True
    raise_errors: bool = True
    annotation_marker: str = "cpprefl"
    body_marker: str = BODY_MARKER
    source_extensions: List[str] = Field(default_factory=lambda: [".h", ".hpp"])
    registry_open_attempts: int = Field(default=100, ge=1)
    registry_open_delay: float = Field(default=0.05, ge=0)
    strict_merge: bool = False
    delete_empty_sources: bool = True
    delete_empty_headers: bool = False
    log_level: str = "INFO"
    libclang_file: Optional[Path] = Field(
        default=None, description="Explicit libclang shared library; the bundled one is used otherwise"
    )

    @field_validator("module_directory", "output_directory", mode="before")
    def _coerce_path(cls, value: str | Path) -> Path:
        return Path(value).expanduser().resolve()

    @field_validator("include_paths", mode="before")
    def _coerce_paths(cls, value: List[str | Path]) -> List[Path]:
        return [Path(v).expanduser().resolve() for v in value or []]

    @field_validator("source_extensions", mode="before")
    def _normalize_extensions(cls, value: List[str]) -> List[str]:
        return [ext if ext.startswith(".") else f".{ext}" for ext in value or []]

    def frontend_args(self) -> List[str]:
        """Arguments passed to the compiler frontend for every parse."""
        args = list(self.clang_args)
        args.extend(f"-I{path}" for path in self.include_paths)
        args.extend(f"-D{define}" for define in self.definitions if define)
        args.append(f"-D{BUILD_REFLECTION_DEFINE}")
        return args


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load configuration from YAML if provided, otherwise use defaults."""
    path = config_path or Path("reflgen.yaml")
    if path.exists():
        data = yaml.safe_load(path.read_text()) or {}
    else:
        data = {}
    return Settings(**data)
