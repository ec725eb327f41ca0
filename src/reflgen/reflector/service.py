from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

import structlog

from ..codegen.generator import FileCodeGenerator, GeneratedFile, ModuleCodeGenerator
from ..config import Settings
from ..frontend.base import Frontend, check_diagnostics
from ..registry.files import (
    GENERATED_HEADER_EXTENSION,
    GENERATED_SOURCE_EXTENSION,
    REGISTRY_EXTENSION,
    append_registry,
    collect_file_registries,
    source_to_generated,
    write_registry,
)
from ..registry.hashing import HashFunction, crc32
from ..registry.registry import Registry
from ..utils import path_is_within
from .reflector import DeclarationReflector

logger = structlog.get_logger()


class ReflectionService:
    def __init__(
        self,
        settings: Settings,
        frontend: Frontend | None = None,
        hash_function: HashFunction = crc32,
    ) -> None:
        self.settings = settings
        self._frontend = frontend
        self.hash_function = hash_function

    @property
    def frontend(self) -> Frontend:
        # Built on first parse; the module pass never needs libclang.
        if self._frontend is None:
            self._frontend = build_frontend(self.settings)
        return self._frontend

    # --- public API ---
    def reflect_file(self, input_file: Path) -> Registry:
        """Reflect one source file and write its registry plus generated code."""
        input_file = Path(input_file).resolve()
        self._prepare_output(input_file)

        unit = self.frontend.parse(input_file, self.settings.frontend_args())
        check_diagnostics(
            unit.diagnostics,
            raise_warnings=self.settings.raise_warnings,
            raise_errors=self.settings.raise_errors,
        )

        reflector = DeclarationReflector(
            self.settings.module_directory,
            Registry(hash_function=self.hash_function),
            annotation_marker=self.settings.annotation_marker,
            body_marker=self.settings.body_marker,
        )
        registry = reflector.reflect(unit.root)

        write_registry(self._output(input_file, REGISTRY_EXTENSION), registry, **self._retry())
        generator = FileCodeGenerator(
            registry, self.settings.module_directory, self.settings.output_directory
        )
        self._write_files(generator.generate(input_file))
        self.cleanup()

        logger.info(
            "file_reflected",
            path=str(input_file),
            classes=len(registry.classes),
            enums=len(registry.enums),
            aliases=len(registry.aliases),
            functions=len(registry.functions),
        )
        return registry

    def reflect_module(self) -> Registry:
        """Merge every per-file registry of the module and write the module code."""
        settings = self.settings
        registry = collect_file_registries(
            settings.module_name,
            settings.module_directory,
            settings.output_directory,
            source_extensions=settings.source_extensions,
            hash_function=self.hash_function,
            strict=settings.strict_merge,
        )
        aggregate = settings.output_directory / f"{settings.module_name}{REGISTRY_EXTENSION}"
        append_registry(aggregate, registry, **self._retry())

        generator = ModuleCodeGenerator(
            registry, settings.module_name, settings.module_directory, settings.output_directory
        )
        self._write_files(generator.generate())
        logger.info("module_reflected", module=settings.module_name, classes=len(registry.classes))
        return registry

    def cleanup(self) -> None:
        """Remove empty generated files and empty directories under the output directory."""
        extensions: List[str] = []
        if self.settings.delete_empty_headers:
            extensions.append(GENERATED_HEADER_EXTENSION)
        if self.settings.delete_empty_sources:
            extensions.append(GENERATED_SOURCE_EXTENSION)
        output_dir = self.settings.output_directory
        if not output_dir.exists():
            return
        for extension in extensions:
            for path in output_dir.rglob(f"*{extension}"):
                if path.is_file() and path.stat().st_size == 0:
                    path.unlink()
        directories = sorted(
            (p for p in output_dir.rglob("*") if p.is_dir()),
            key=lambda p: len(p.parts),
            reverse=True,
        )
        for directory in directories:
            if not any(directory.iterdir()):
                directory.rmdir()

    # --- helpers ---
    def _prepare_output(self, input_file: Path) -> None:
        """Drop this file's previous outputs and create empty generated headers for the module.

        Sources include their generated header, so every header of the module
        needs one before the frontend runs.
        """
        settings = self.settings
        settings.output_directory.mkdir(parents=True, exist_ok=True)
        for extension in (GENERATED_HEADER_EXTENSION, GENERATED_SOURCE_EXTENSION, REGISTRY_EXTENSION):
            self._output(input_file, extension).unlink(missing_ok=True)

        for header in self._module_headers():
            placeholder = self._output(header, GENERATED_HEADER_EXTENSION)
            if placeholder.exists():
                continue
            placeholder.parent.mkdir(parents=True, exist_ok=True)
            try:
                placeholder.touch()
            except OSError as exc:
                # Another process may be creating the same placeholder.
                logger.debug("placeholder_create_failed", path=str(placeholder), error=str(exc))

    def _module_headers(self) -> Iterable[Path]:
        for extension in self.settings.source_extensions:
            for path in self.settings.module_directory.rglob(f"*{extension}"):
                if path_is_within(path, self.settings.output_directory):
                    continue
                yield path

    def _output(self, source: Path, extension: str) -> Path:
        return source_to_generated(
            source, self.settings.module_directory, self.settings.output_directory, extension
        )

    def _write_files(self, files: Iterable[GeneratedFile]) -> None:
        for generated in files:
            generated.path.parent.mkdir(parents=True, exist_ok=True)
            generated.path.write_text(generated.text)

    def _retry(self) -> dict:
        return {
            "attempts": self.settings.registry_open_attempts,
            "delay": self.settings.registry_open_delay,
        }


def build_frontend(settings: Settings) -> Frontend:
    from ..frontend.libclang import ClangFrontend

    return ClangFrontend(library_file=settings.libclang_file)
