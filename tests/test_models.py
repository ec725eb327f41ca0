"""Tests for reflection records: names, templates, metadata views."""
from pathlib import Path

import pytest

from reflgen.models.reflection import (
    AliasInfo,
    ClassType,
    FileObjects,
    FunctionInfo,
    MetadataLifetime,
    MetadataValue,
    TemplateInfo,
    TemplateKind,
    TypeInfo,
    TypeInstanceInfo,
    TypeKind,
)
from reflgen.registry.registry import Registry

from conftest import class_info, metadata


def test_qualified_names():
    info = TypeInfo("Player", "game::entities", TypeKind.CLASS)

    assert info.qualified_name == "game::entities::Player"
    assert info.globally_qualified_name == "::game::entities::Player"
    assert info.flattened_name == "game_entities_Player"
    assert info.namespaces() == ["game", "entities"]
    assert not info.is_in_global_namespace()


def test_global_namespace_names():
    info = TypeInfo("Player", kind=TypeKind.CLASS)

    assert info.qualified_name == "Player"
    assert info.globally_qualified_name == "::Player"
    assert info.namespaces() == []
    assert info.is_in_global_namespace()


def test_nested_class_name_is_not_split_into_namespaces():
    info = TypeInfo("Outer::Inner", "game", TypeKind.CLASS)

    assert info.namespaces() == ["game"]
    assert info.qualified_name == "game::Outer::Inner"


def test_type_kind_predicates():
    assert TypeInfo("int", kind=TypeKind.INT32).is_integer
    assert TypeInfo("int", kind=TypeKind.INT32).is_signed
    assert TypeInfo("unsigned int", kind=TypeKind.UINT32).is_unsigned
    assert TypeInfo("double", kind=TypeKind.DOUBLE).is_real
    assert TypeInfo("double", kind=TypeKind.DOUBLE).is_signed
    assert TypeInfo("bool", kind=TypeKind.BOOL).is_primitive
    assert not TypeInfo("Player", kind=TypeKind.CLASS).is_primitive
    assert TypeInfo("Color", kind=TypeKind.ENUM).is_enum
    assert TypeInfo("Player", kind=TypeKind.CLASS).is_class
    assert not TypeInfo("void", kind=TypeKind.VOID).is_primitive


def test_template_requires_arguments():
    with pytest.raises(ValueError):
        TemplateInfo(TemplateKind.GENERIC, [])


def test_generic_and_specialized_templates():
    param = TypeInfo("T", kind=TypeKind.TEMPLATE)
    generic = TypeInfo("Box", "game", TypeKind.CLASS, TemplateInfo(TemplateKind.GENERIC, [param]))
    specialized = TypeInfo(
        "Box<int>",
        "game",
        TypeKind.CLASS,
        TemplateInfo(TemplateKind.SPECIALIZED, [TypeInfo("int", kind=TypeKind.INT32)]),
    )

    assert generic.is_templated and not generic.is_instantiable
    assert specialized.is_templated and specialized.is_instantiable
    assert generic.template_type_name == "game::Box"
    assert specialized.template_type_name == "game::Box"
    assert TypeInfo("int", kind=TypeKind.INT32).template_type_name is None
    assert generic.template.declaration_signature == "template <typename T>"
    assert specialized.template.instantiation_signature == "<int>"


def test_forward_declarations():
    generic = class_info("Box")
    generic.type.template = TemplateInfo(
        TemplateKind.GENERIC,
        [TypeInfo("K", kind=TypeKind.TEMPLATE), TypeInfo("V", kind=TypeKind.TEMPLATE)],
    )
    generic.class_type = ClassType.STRUCT

    assert class_info("Player").forward_declaration == "class Player;"
    assert generic.forward_declaration == "template <typename K, typename V> struct Box;"


def test_function_signature():
    function = FunctionInfo(
        name="Spawn",
        namespace="game",
        return_type=TypeInstanceInfo(TypeInfo("Player", "game", TypeKind.CLASS)),
        argument_types=[
            TypeInstanceInfo(TypeInfo("int", kind=TypeKind.INT32), const=True),
            TypeInstanceInfo(TypeInfo("float", kind=TypeKind.FLOAT)),
        ],
        metadata=metadata(),
    )

    assert function.qualified_name == "game::Spawn"
    assert function.flattened_name == "game_Spawn"
    assert function.signature == "::game::Player(const int, float)"


def test_metadata_lifetimes():
    info = metadata()
    info.tags = [MetadataValue("Visible"), MetadataValue("EditorOnly", MetadataLifetime.COMPILE)]
    info.attributes = {
        "Category": MetadataValue("Gameplay"),
        "Tooltip": MetadataValue("Health", MetadataLifetime.COMPILE),
    }

    assert [t.value for t in info.runtime_tags] == ["Visible"]
    # Runtime metadata is visible at compile time as well.
    assert [t.value for t in info.compile_tags] == ["Visible", "EditorOnly"]
    assert list(info.runtime_attributes) == ["Category"]
    assert list(info.compile_attributes) == ["Category", "Tooltip"]
    assert info.has_tag("EditorOnly")
    assert not info.has_tag("Missing")


def test_source_location_formats_ide_diagnostic():
    location = metadata(Path("/module/Player.h"), 12).source_location

    assert location.ide_diagnostic == "/module/Player.h(12):"
    assert location.stem == "Player"


def test_alias_resolves_class_through_alias_chain():
    registry = Registry()
    target = class_info("Player")
    registry.add_class(target)
    last = AliasInfo(
        type=TypeInfo("PlayerRef", kind=TypeKind.INVALID),
        alias_type=target.type,
        metadata=metadata(),
        alias_class="Player",
    )
    middle = AliasInfo(
        type=TypeInfo("Hero", kind=TypeKind.INVALID), alias_type=last.type, metadata=metadata()
    )
    first = AliasInfo(
        type=TypeInfo("MainHero", kind=TypeKind.INVALID), alias_type=middle.type, metadata=metadata()
    )
    for info in (last, middle, first):
        registry.add_alias(info)

    assert first.get_underlying_class(registry) is target
    assert first.get_underlying_enum(registry) is None


def test_alias_cycle_terminates():
    registry = Registry()
    a_type = TypeInfo("A", kind=TypeKind.INVALID)
    b_type = TypeInfo("B", kind=TypeKind.INVALID)
    registry.add_alias(AliasInfo(type=a_type, alias_type=b_type, metadata=metadata()))
    registry.add_alias(AliasInfo(type=b_type, alias_type=a_type, metadata=metadata()))

    assert registry.get_alias("A").get_underlying_class(registry) is None


def test_file_objects_any():
    assert not FileObjects().any()
    assert FileObjects(classes=[class_info("Player")]).any()
