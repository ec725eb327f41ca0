"""reflgen CLI: reflect one file, merge a module, or inspect a registry."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from ..config import Settings, load_settings
from ..errors import DiagnosticsError, ReflectionError
from ..log import configure_logging
from ..registry.files import read_registry

console = Console()
err_console = Console(stderr=True)
app = typer.Typer(add_completion=False, no_args_is_help=True)

FAILURE_HEADER = "One or more compile errors occurred during reflection generation."


def _split(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [item for item in value.split(";") if item]


def _resolve_settings(config_path: Optional[Path], **overrides) -> Settings:
    data = load_settings(config_path).model_dump()
    data.update({key: value for key, value in overrides.items() if value is not None})
    return Settings(**data)


def _report_failure(exc: Exception) -> None:
    messages = exc.messages if isinstance(exc, DiagnosticsError) else [str(exc)]
    console.print(FAILURE_HEADER, markup=False, highlight=False)
    for message in messages:
        console.print(message, markup=False, highlight=False)
        err_console.print(message, markup=False, highlight=False)


@app.command("file")
def reflect_file(
    entry: Path = typer.Option(..., "--entry", help="Source file to reflect (.h or .cpp)"),
    module_name: Optional[str] = typer.Option(None, "--module-name", help="Name of the module"),
    module_directory: Optional[Path] = typer.Option(
        None, "--module-directory", help="Module root; declarations outside it are ignored"
    ),
    output_directory: Optional[Path] = typer.Option(
        None, "--output-directory", help="Directory for generated files"
    ),
    clang_args: Optional[str] = typer.Option(None, "--clang-args", help="';'-separated clang arguments"),
    include_paths: Optional[str] = typer.Option(None, "--include-paths", help="';'-separated include paths"),
    definitions: Optional[str] = typer.Option(None, "--definitions", help="';'-separated preprocessor defines"),
    no_raise_clang_warnings: bool = typer.Option(
        False, "--no-raise-clang-warnings", help="Do not fail on clang warnings"
    ),
    no_raise_clang_errors: bool = typer.Option(
        False, "--no-raise-clang-errors", help="Do not fail on clang errors"
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to reflgen.yaml"),
):
    """Reflect one source file and write its registry and generated code."""
    settings = _resolve_settings(
        config,
        module_name=module_name,
        module_directory=module_directory,
        output_directory=output_directory,
        include_paths=_split(include_paths),
        definitions=_split(definitions),
        raise_warnings=False if no_raise_clang_warnings else None,
        raise_errors=False if no_raise_clang_errors else None,
    )
    extra_args = _split(clang_args)
    if extra_args:
        settings.clang_args = [*settings.clang_args, *extra_args]
    configure_logging(settings.log_level)

    from ..reflector.service import ReflectionService

    try:
        registry = ReflectionService(settings).reflect_file(entry)
    except (ReflectionError, OSError) as exc:
        _report_failure(exc)
        raise typer.Exit(1)

    console.print(
        f"[green]Reflected[/green] {entry}: {len(registry.classes)} classes, "
        f"{len(registry.enums)} enums, {len(registry.aliases)} aliases, "
        f"{len(registry.functions)} functions"
    )


@app.command("module")
def reflect_module(
    module_name: Optional[str] = typer.Option(None, "--module-name", help="Name of the module"),
    module_directory: Optional[Path] = typer.Option(None, "--module-directory", help="Module root"),
    output_directory: Optional[Path] = typer.Option(
        None, "--output-directory", help="Directory holding per-file registries"
    ),
    strict: bool = typer.Option(False, "--strict", help="Fail when registries disagree on a key"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to reflgen.yaml"),
):
    """Merge the per-file registries of a module and write the module code."""
    settings = _resolve_settings(
        config,
        module_name=module_name,
        module_directory=module_directory,
        output_directory=output_directory,
        strict_merge=True if strict else None,
    )
    configure_logging(settings.log_level)

    from ..reflector.service import ReflectionService

    try:
        registry = ReflectionService(settings).reflect_module()
    except (ReflectionError, OSError) as exc:
        _report_failure(exc)
        raise typer.Exit(1)

    console.print(
        f"[green]Module {settings.module_name}[/green]: {len(registry.classes)} classes, "
        f"{len(registry.enums)} enums"
    )


@app.command()
def show(
    registry_file: Path = typer.Argument(..., help="Registry file to display"),
):
    """Show the contents of a registry file."""
    if not registry_file.exists():
        console.print(f"[red]Registry not found:[/red] {registry_file}")
        raise typer.Exit(1)

    try:
        registry = read_registry(registry_file)
    except ReflectionError as exc:
        _report_failure(exc)
        raise typer.Exit(1)

    table = Table(title=f"Classes in {registry_file.name}")
    table.add_column("Name", style="cyan")
    table.add_column("Kind")
    table.add_column("Fields")
    table.add_column("Methods")
    table.add_column("Bases")
    table.add_column("Reflected")
    for class_info in registry.get_classes():
        table.add_row(
            class_info.qualified_name,
            class_info.class_type.value,
            ", ".join(f"{f.name}: {f.type.qualified_name}" for f in class_info.fields),
            ", ".join(m.name for m in class_info.methods),
            ", ".join(class_info.base_classes),
            "yes" if class_info.metadata.is_reflected else "no",
        )
    console.print(table)

    if registry.enums:
        table = Table(title="Enums")
        table.add_column("Name", style="cyan")
        table.add_column("Values")
        for enum_info in registry.get_enums():
            table.add_row(
                enum_info.qualified_name,
                ", ".join(f"{v.name}={v.value}" for v in enum_info.values),
            )
        console.print(table)

    if registry.aliases:
        table = Table(title="Aliases")
        table.add_column("Name", style="cyan")
        table.add_column("Aliased type")
        for alias_info in registry.get_aliases():
            table.add_row(alias_info.qualified_name, alias_info.alias_type.qualified_name)
        console.print(table)

    if registry.functions:
        table = Table(title="Functions")
        table.add_column("Name", style="cyan")
        table.add_column("Signature")
        for function_info in registry.get_functions():
            table.add_row(function_info.qualified_name, function_info.signature)
        console.print(table)


if __name__ == "__main__":
    app()
