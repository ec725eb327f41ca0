from __future__ import annotations

import os
import time
from pathlib import Path
from typing import IO, Iterable, List, Optional

import structlog

from ..errors import RegistryFileError
from .hashing import HashFunction, crc32
from .registry import Registry
from .serialization import from_json, to_json

logger = structlog.get_logger()

REGISTRY_EXTENSION = ".reflregistry.json"
GENERATED_HEADER_EXTENSION = ".reflgen.h"
GENERATED_SOURCE_EXTENSION = ".reflgen.cpp"
MODULE_HEADER_EXTENSION = ".reflmodule.h"
MODULE_SOURCE_EXTENSION = ".reflmodule.cpp"

# Entry files that are not headers but still own a per-file registry.
TRANSLATION_UNIT_EXTENSIONS = (".cpp", ".cc", ".cxx")

DEFAULT_OPEN_ATTEMPTS = 100
DEFAULT_OPEN_DELAY = 0.05


def source_to_generated(source: Path, module_dir: Path, output_dir: Path, extension: str) -> Path:
    """Path of the file generated for ``source``, mirroring its place under ``module_dir``."""
    source = Path(source).resolve()
    relative_dir = os.path.relpath(source.parent, Path(module_dir).resolve())
    return (Path(output_dir) / relative_dir / f"{source.stem}{extension}").resolve()


def generated_to_source(
    generated: Path,
    module_dir: Path,
    output_dir: Path,
    extension: str,
    source_extensions: Iterable[str] = (".h",),
) -> Optional[Path]:
    """Existing source file a generated file was produced from, or None."""
    generated = Path(generated).resolve()
    if not generated.name.endswith(extension):
        return None
    stem = generated.name[: -len(extension)]
    relative_dir = os.path.relpath(generated.parent, Path(output_dir).resolve())
    for source_extension in source_extensions:
        candidate = (Path(module_dir) / relative_dir / f"{stem}{source_extension}").resolve()
        if candidate.exists():
            return candidate
    return None


def open_with_retry(
    path: Path,
    mode: str = "r",
    attempts: int = DEFAULT_OPEN_ATTEMPTS,
    delay: float = DEFAULT_OPEN_DELAY,
) -> IO[str]:
    """Open ``path``, retrying while another process holds it."""
    last_error: Optional[OSError] = None
    for attempt in range(attempts):
        try:
            return open(path, mode, encoding="utf-8")
        except FileNotFoundError:
            raise
        except OSError as exc:
            last_error = exc
            if attempt + 1 < attempts:
                logger.warning(
                    "registry_open_retry",
                    path=str(path),
                    attempt=attempt + 1,
                    max_attempts=attempts,
                    delay_sec=delay,
                )
                time.sleep(delay)
    raise RegistryFileError(f"Failed to open '{path}' after {attempts} attempts: {last_error}")


def read_registry(path: Path, hash_function: HashFunction = crc32, **retry) -> Registry:
    with open_with_retry(path, "r", **retry) as handle:
        text = handle.read()
    try:
        return from_json(text, hash_function)
    except RegistryFileError as exc:
        raise RegistryFileError(f"{path}: {exc}") from exc


def write_registry(path: Path, registry: Registry, **retry) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open_with_retry(path, "w", **retry) as handle:
        handle.write(to_json(registry))


def append_registry(path: Path, registry: Registry, **retry) -> Registry:
    """Merge ``registry`` into the registry stored at ``path`` (created when missing).

    Entries of ``registry`` replace the stored ones.
    """
    combined = Registry(hash_function=registry.hash_function)
    if path.exists():
        combined.merge(read_registry(path, registry.hash_function, **retry))
    combined.merge(registry)
    write_registry(path, combined, **retry)
    return combined


def find_registry_files(output_dir: Path) -> List[Path]:
    return sorted(Path(output_dir).rglob(f"*{REGISTRY_EXTENSION}"))


def collect_file_registries(
    module_name: str,
    module_dir: Path,
    output_dir: Path,
    source_extensions: Iterable[str] = (".h",),
    hash_function: HashFunction = crc32,
    strict: bool = False,
) -> Registry:
    """Merge every per-file registry under ``output_dir`` into one module registry.

    The module's own aggregate is skipped, and registries whose source file no
    longer exists are deleted.
    """
    source_extensions = [*source_extensions, *TRANSLATION_UNIT_EXTENSIONS]
    aggregate = (Path(output_dir) / f"{module_name}{REGISTRY_EXTENSION}").resolve()
    result = Registry(hash_function=hash_function)
    for registry_file in find_registry_files(output_dir):
        if registry_file.resolve() == aggregate:
            continue
        source = generated_to_source(
            registry_file, module_dir, output_dir, REGISTRY_EXTENSION, source_extensions
        )
        if source is None:
            logger.debug("stale_registry_removed", path=str(registry_file))
            registry_file.unlink(missing_ok=True)
            continue
        result.merge(read_registry(registry_file, hash_function), strict=strict)
    return result
