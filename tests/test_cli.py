"""Tests for the reflgen CLI."""
from pathlib import Path

import pytest
from typer.testing import CliRunner

from reflgen.cli import main
from reflgen.config import BODY_MARKER
from reflgen.frontend.base import Diagnostic, DiagnosticSeverity
from reflgen.reflector import service
from reflgen.registry.files import write_registry
from reflgen.registry.registry import Registry

from conftest import FakeFrontend, builtin, class_info, field, method, record, translation_unit

runner = CliRunner()
WIDE = {"COLUMNS": "200"}


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(main, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.chdir(tmp_path)


def _use_frontend(monkeypatch, frontend):
    monkeypatch.setattr(service, "build_frontend", lambda settings: frontend)


def _paths(module_layout):
    module_dir, output_dir = module_layout
    return [
        "--module-name",
        "Game",
        "--module-directory",
        str(module_dir),
        "--output-directory",
        str(output_dir),
    ]


def test_file_command_reflects_entry(module_layout, monkeypatch):
    module_dir, output_dir = module_layout
    header = module_dir / "game" / "Player.h"
    unit = translation_unit(
        record("Player", method(BODY_MARKER, builtin("void"), annotations=(), line=4), field("hp", builtin("int"))),
        file=header,
    )
    frontend = FakeFrontend(unit)
    _use_frontend(monkeypatch, frontend)

    result = runner.invoke(
        main.app,
        ["file", "--entry", str(header), *_paths(module_layout), "--definitions", "EDITOR;DEBUG=1"],
        env=WIDE,
    )

    assert result.exit_code == 0, result.output
    assert "1 classes" in result.stdout
    assert "-DEDITOR" in frontend.args and "-DDEBUG=1" in frontend.args
    assert (output_dir / "game" / "Player.reflregistry.json").exists()


def test_file_command_reports_diagnostics(module_layout, monkeypatch):
    module_dir, _ = module_layout
    header = module_dir / "game" / "Player.h"
    error = Diagnostic(DiagnosticSeverity.ERROR, "unknown type name 'Foo'", header, 3)
    _use_frontend(monkeypatch, FakeFrontend(translation_unit(file=header), [error]))

    result = runner.invoke(main.app, ["file", "--entry", str(header), *_paths(module_layout)], env=WIDE)

    assert result.exit_code == 1
    assert main.FAILURE_HEADER in result.stdout
    assert "Player.h(3): unknown type name 'Foo'" in result.stdout


def test_file_command_can_ignore_errors(module_layout, monkeypatch):
    module_dir, _ = module_layout
    header = module_dir / "game" / "Player.h"
    error = Diagnostic(DiagnosticSeverity.ERROR, "unknown type name 'Foo'", header, 3)
    _use_frontend(monkeypatch, FakeFrontend(translation_unit(file=header), [error]))

    result = runner.invoke(
        main.app,
        ["file", "--entry", str(header), *_paths(module_layout), "--no-raise-clang-errors"],
        env=WIDE,
    )

    assert result.exit_code == 0, result.output


def test_module_command(module_layout, monkeypatch):
    module_dir, output_dir = module_layout
    header = module_dir / "game" / "Player.h"
    unit = translation_unit(
        record("Player", method(BODY_MARKER, builtin("void"), annotations=(), line=4)), file=header
    )
    _use_frontend(monkeypatch, FakeFrontend(unit))
    runner.invoke(main.app, ["file", "--entry", str(header), *_paths(module_layout)], env=WIDE)

    result = runner.invoke(main.app, ["module", *_paths(module_layout)], env=WIDE)

    assert result.exit_code == 0, result.output
    assert "Module Game" in result.stdout
    assert (output_dir / "Game.reflmodule.cpp").exists()


def test_show_command(tmp_path: Path):
    registry = Registry()
    registry.add_class(class_info("Player", "game"))
    path = tmp_path / "Player.reflregistry.json"
    write_registry(path, registry)

    result = runner.invoke(main.app, ["show", str(path)], env=WIDE)

    assert result.exit_code == 0, result.output
    assert "game::Player" in result.stdout


def test_show_missing_registry(tmp_path: Path):
    result = runner.invoke(main.app, ["show", str(tmp_path / "missing.json")], env=WIDE)

    assert result.exit_code == 1
    assert "Registry not found" in result.stdout
