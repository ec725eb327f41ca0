"""JSON persistence for Registry.

Types are written once in a flat table; every other record refers to types,
base classes and alias targets by qualified name, and loading rebuilds one
shared TypeInfo per name.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import RegistryFileError
from ..models.reflection import (
    AliasInfo,
    ClassInfo,
    ClassType,
    EnumInfo,
    EnumValueInfo,
    FieldInfo,
    FunctionInfo,
    MetadataInfo,
    MetadataLifetime,
    MetadataValue,
    MethodInfo,
    SourceLocation,
    TemplateInfo,
    TemplateKind,
    TypeInfo,
    TypeInstanceInfo,
    TypeKind,
)
from .hashing import HashFunction, crc32
from .registry import Registry

FORMAT_VERSION = 1


class _Encoder:
    def __init__(self, registry: Registry) -> None:
        self.registry = registry
        self.types: Dict[str, TypeInfo] = dict(registry.types)

    def type_ref(self, type_info: TypeInfo) -> str:
        name = type_info.qualified_name
        if name not in self.types:
            self.types[name] = type_info
        if type_info.template is not None:
            for argument in type_info.template.arguments:
                self.type_ref(argument)
        return name

    def encode(self) -> Dict[str, Any]:
        classes = [self.class_info(c) for c in self.registry.classes.values()]
        enums = [self.enum_info(e) for e in self.registry.enums.values()]
        aliases = [self.alias_info(a) for a in self.registry.aliases.values()]
        functions = [self.function_info(f) for f in self.registry.functions.values()]
        # Walk template arguments of already known types as well.
        for type_info in list(self.types.values()):
            self.type_ref(type_info)
        return {
            "version": FORMAT_VERSION,
            "types": [self.type_info(t) for t in self.types.values()],
            "classes": classes,
            "enums": enums,
            "aliases": aliases,
            "functions": functions,
        }

    def type_info(self, type_info: TypeInfo) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": type_info.qualified_name,
            "name": type_info.name,
            "namespace": type_info.namespace,
            "kind": type_info.kind.name,
        }
        if type_info.template is not None:
            data["template"] = {
                "kind": type_info.template.kind.value,
                "arguments": [self.type_ref(a) for a in type_info.template.arguments],
            }
        return data

    def instance(self, instance: TypeInstanceInfo) -> Dict[str, Any]:
        return {"type": self.type_ref(instance.type), "const": instance.const}

    def metadata(self, metadata: MetadataInfo) -> Dict[str, Any]:
        return {
            "is_reflected": metadata.is_reflected,
            "tags": [_value(t) for t in metadata.tags],
            "attributes": {k: _value(v) for k, v in metadata.attributes.items()},
            "file": str(metadata.source_location.file_path),
            "line": metadata.source_location.line,
            "comment": metadata.comment,
        }

    def class_info(self, class_info: ClassInfo) -> Dict[str, Any]:
        return {
            "type": self.type_ref(class_info.type),
            "metadata": self.metadata(class_info.metadata),
            "class_type": class_info.class_type.value,
            "is_abstract": class_info.is_abstract,
            "fields": [
                {
                    "name": f.name,
                    "type": self.instance(f.type_instance),
                    "metadata": self.metadata(f.metadata),
                }
                for f in class_info.fields
            ],
            "methods": [self.function_base(m) for m in class_info.methods],
            "base_classes": list(class_info.base_classes),
            "generated_body_line": class_info.generated_body_line,
        }

    def function_base(self, function: MethodInfo | FunctionInfo) -> Dict[str, Any]:
        return {
            "name": function.name,
            "return_type": self.instance(function.return_type),
            "argument_types": [self.instance(a) for a in function.argument_types],
            "metadata": self.metadata(function.metadata),
        }

    def function_info(self, function: FunctionInfo) -> Dict[str, Any]:
        data = self.function_base(function)
        data["namespace"] = function.namespace
        return data

    def enum_info(self, enum_info: EnumInfo) -> Dict[str, Any]:
        return {
            "type": self.type_ref(enum_info.type),
            "metadata": self.metadata(enum_info.metadata),
            "values": [
                {"name": v.name, "value": v.value, "metadata": self.metadata(v.metadata)}
                for v in enum_info.values
            ],
            "generated_body_line": enum_info.generated_body_line,
        }

    def alias_info(self, alias_info: AliasInfo) -> Dict[str, Any]:
        return {
            "type": self.type_ref(alias_info.type),
            "alias_type": self.type_ref(alias_info.alias_type),
            "metadata": self.metadata(alias_info.metadata),
            "alias_class": alias_info.alias_class,
            "alias_enum": alias_info.alias_enum,
        }


class _Decoder:
    def __init__(self, data: Dict[str, Any]) -> None:
        self._raw_types = {entry["id"]: entry for entry in data.get("types", [])}
        self._types: Dict[str, TypeInfo] = {}

    def type_ref(self, name: str) -> TypeInfo:
        cached = self._types.get(name)
        if cached is not None:
            return cached
        entry = self._raw_types.get(name)
        if entry is None:
            raise RegistryFileError(f"Unknown type reference '{name}'")
        template: Optional[TemplateInfo] = None
        if entry.get("template"):
            template = TemplateInfo(
                kind=TemplateKind(entry["template"]["kind"]),
                arguments=[self.type_ref(a) for a in entry["template"]["arguments"]],
            )
        type_info = TypeInfo(
            name=entry["name"],
            namespace=entry.get("namespace", ""),
            kind=TypeKind[entry["kind"]],
            template=template,
        )
        self._types[name] = type_info
        return type_info

    def all_types(self) -> List[TypeInfo]:
        return [self.type_ref(name) for name in self._raw_types]

    def instance(self, data: Dict[str, Any]) -> TypeInstanceInfo:
        return TypeInstanceInfo(type=self.type_ref(data["type"]), const=data.get("const", False))

    def metadata(self, data: Dict[str, Any]) -> MetadataInfo:
        return MetadataInfo(
            source_location=SourceLocation(Path(data["file"]), data.get("line", 0)),
            is_reflected=data.get("is_reflected", False),
            tags=[_parse_value(t) for t in data.get("tags", [])],
            attributes={k: _parse_value(v) for k, v in data.get("attributes", {}).items()},
            comment=data.get("comment"),
        )

    def class_info(self, data: Dict[str, Any]) -> ClassInfo:
        return ClassInfo(
            type=self.type_ref(data["type"]),
            metadata=self.metadata(data["metadata"]),
            class_type=ClassType(data.get("class_type", ClassType.CLASS.value)),
            is_abstract=data.get("is_abstract", False),
            fields=[
                FieldInfo(
                    name=f["name"],
                    type_instance=self.instance(f["type"]),
                    metadata=self.metadata(f["metadata"]),
                )
                for f in data.get("fields", [])
            ],
            methods=[
                MethodInfo(
                    name=m["name"],
                    return_type=self.instance(m["return_type"]),
                    argument_types=[self.instance(a) for a in m.get("argument_types", [])],
                    metadata=self.metadata(m["metadata"]),
                )
                for m in data.get("methods", [])
            ],
            base_classes=list(data.get("base_classes", [])),
            generated_body_line=data.get("generated_body_line"),
        )

    def enum_info(self, data: Dict[str, Any]) -> EnumInfo:
        return EnumInfo(
            type=self.type_ref(data["type"]),
            metadata=self.metadata(data["metadata"]),
            values=[
                EnumValueInfo(name=v["name"], value=v["value"], metadata=self.metadata(v["metadata"]))
                for v in data.get("values", [])
            ],
            generated_body_line=data.get("generated_body_line"),
        )

    def alias_info(self, data: Dict[str, Any]) -> AliasInfo:
        return AliasInfo(
            type=self.type_ref(data["type"]),
            alias_type=self.type_ref(data["alias_type"]),
            metadata=self.metadata(data["metadata"]),
            alias_class=data.get("alias_class"),
            alias_enum=data.get("alias_enum"),
        )

    def function_info(self, data: Dict[str, Any]) -> FunctionInfo:
        return FunctionInfo(
            name=data["name"],
            namespace=data.get("namespace", ""),
            return_type=self.instance(data["return_type"]),
            argument_types=[self.instance(a) for a in data.get("argument_types", [])],
            metadata=self.metadata(data["metadata"]),
        )


def _value(value: MetadataValue) -> Dict[str, Any]:
    return {"value": value.value, "lifetime": value.lifetime.name.lower()}


def _parse_value(data: Dict[str, Any]) -> MetadataValue:
    return MetadataValue(value=data["value"], lifetime=MetadataLifetime[data["lifetime"].upper()])


# --- public API ---
def registry_to_dict(registry: Registry) -> Dict[str, Any]:
    return _Encoder(registry).encode()


def registry_from_dict(data: Dict[str, Any], hash_function: HashFunction = crc32) -> Registry:
    version = data.get("version")
    if version != FORMAT_VERSION:
        raise RegistryFileError(f"Unsupported registry format version: {version}")
    try:
        decoder = _Decoder(data)
        registry = Registry(hash_function=hash_function)
        for type_info in decoder.all_types():
            registry.add_type(type_info)
        for entry in data.get("classes", []):
            registry.add_class(decoder.class_info(entry))
        for entry in data.get("enums", []):
            registry.add_enum(decoder.enum_info(entry))
        for entry in data.get("aliases", []):
            registry.add_alias(decoder.alias_info(entry))
        for entry in data.get("functions", []):
            registry.add_function(decoder.function_info(entry))
    except (KeyError, ValueError, TypeError) as exc:
        raise RegistryFileError(f"Malformed registry data: {exc}") from exc
    return registry


def to_json(registry: Registry, indent: Optional[int] = 2) -> str:
    return json.dumps(registry_to_dict(registry), indent=indent)


def from_json(text: str, hash_function: HashFunction = crc32) -> Registry:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RegistryFileError(f"Invalid registry JSON: {exc}") from exc
    return registry_from_dict(data, hash_function)
