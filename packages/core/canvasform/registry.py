"""Resource type registry.

Maps resource type ids to their schema and HCL generator, and carries the
connection rules and provider configurations contributed by provider plugins.
A registry is assembled once, from the full set of plugins, with
:class:`RegistryBuilder` and is immutable afterwards; the compiler receives it
explicitly.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from canvasform.diagram import ConnectionRule, NamingConstraints, PropertySchema

if TYPE_CHECKING:
    from canvasform.compiler import GenerationContext
    from canvasform.diagram import ResourceInstance
    from canvasform.hcl import HclBlock
    from canvasform.providers import ProviderConfig

logger = logging.getLogger(__name__)

Generator = Callable[["ResourceInstance", "GenerationContext"], "list[HclBlock]"]
BindingFn = Callable[["ResourceInstance", "ResourceInstance", "GenerationContext", str], "list[HclBlock]"]


class ResourceSchema(BaseModel):
    type_id: str
    provider: str
    display_name: str
    category: str
    terraform_type: str
    description: str = ""
    properties: list[PropertySchema] = Field(default_factory=list)
    # property key on this (virtual) resource -> key in its provider's configuration
    provider_scope: dict[str, str] = Field(default_factory=dict)
    naming_constraints: NamingConstraints | None = None

    @property
    def is_virtual(self) -> bool:
        """Virtual resources sit on the canvas but emit no block of their own."""
        return self.terraform_type.startswith("_")

    def get_property(self, key: str) -> PropertySchema | None:
        for prop in self.properties:
            if prop.key == key:
                return prop
        return None


@dataclass(frozen=True)
class ResourceType:
    """One registration: a schema plus the generator that renders it.

    ``icon`` and ``node_component`` belong to the canvas and are never read here.
    """

    schema: ResourceSchema
    generate: Generator
    icon: str | None = None
    node_component: Any = None

    @property
    def type_id(self) -> str:
        return self.schema.type_id


@dataclass(frozen=True)
class BindingGenerator:
    """Emits blocks that feed an attribute of a source resource into a target.

    A ``source_type`` of None accepts any source type.
    """

    target_type: str
    generate: BindingFn
    source_type: str | None = None


@dataclass(frozen=True)
class ProviderPlugin:
    """Everything one provider plugin contributes."""

    id: str
    name: str
    resource_types: tuple[ResourceType, ...] = ()
    connection_rules: tuple[ConnectionRule, ...] = ()
    binding_generators: tuple[BindingGenerator, ...] = ()
    provider_config: ProviderConfig | None = None
    version: str = "0.1.0"


class TypeRegistry:
    """Immutable lookup of resource types, connection rules and provider configs."""

    def __init__(
        self,
        types: Mapping[str, ResourceType],
        rules: Iterable[ConnectionRule] = (),
        providers: Iterable[ProviderConfig] = (),
        bindings: Iterable[BindingGenerator] = (),
    ):
        self._types = MappingProxyType(dict(types))
        self._rules = tuple(rules)
        self._providers = tuple(providers)
        self._bindings = tuple(bindings)

    def resolve(self, type_id: str) -> ResourceType | None:
        """Return the registration for a type id, or None if it is not registered."""
        return self._types.get(type_id)

    def all_types(self) -> dict[str, ResourceType]:
        return dict(self._types)

    def schema(self, type_id: str) -> ResourceSchema | None:
        rt = self._types.get(type_id)
        return rt.schema if rt else None

    @property
    def rules(self) -> tuple[ConnectionRule, ...]:
        """Connection rules across all plugins, in registration order."""
        return self._rules

    @property
    def bindings(self) -> tuple[BindingGenerator, ...]:
        return self._bindings

    @property
    def providers(self) -> tuple[ProviderConfig, ...]:
        """Registered provider configs in order. Duplicate ids are kept so they can be reported."""
        return self._providers

    def binding_generator(self, source_type: str, target_type: str) -> BindingGenerator | None:
        """Binding generator for a source/target pair; exact matches beat wildcard sources."""
        for binding in self._bindings:
            if binding.source_type == source_type and binding.target_type == target_type:
                return binding
        for binding in self._bindings:
            if binding.source_type is None and binding.target_type == target_type:
                return binding
        return None

    def list_providers(self) -> list[str]:
        return sorted({rt.schema.provider for rt in self._types.values()})

    def list_types(self, provider: str | None = None) -> list[ResourceType]:
        return [rt for rt in self._types.values() if provider is None or rt.schema.provider == provider]

    def stats(self) -> dict[str, int]:
        return {
            "resource_types": len(self._types),
            "connection_rules": len(self._rules),
            "providers": len(self._providers),
            "binding_generators": len(self._bindings),
        }


@dataclass
class RegistryBuilder:
    """Collects plugin contributions and freezes them into a :class:`TypeRegistry`."""

    _types: dict[str, ResourceType] = field(default_factory=dict)
    _rules: list[ConnectionRule] = field(default_factory=list)
    _providers: list[ProviderConfig] = field(default_factory=list)
    _bindings: list[BindingGenerator] = field(default_factory=list)

    def register(self, type_id: str, resource_type: ResourceType) -> RegistryBuilder:
        if type_id != resource_type.type_id:
            raise ValueError(f"Registration for {type_id!r} carries schema for {resource_type.type_id!r}")
        if type_id in self._types:
            logger.info("Replacing registration for resource type %s", type_id)
        self._types[type_id] = resource_type
        return self

    update = register

    def add_rules(self, rules: Iterable[ConnectionRule]) -> RegistryBuilder:
        self._rules.extend(rules)
        return self

    def add_bindings(self, bindings: Iterable[BindingGenerator]) -> RegistryBuilder:
        self._bindings.extend(bindings)
        return self

    def add_provider(self, config: ProviderConfig) -> RegistryBuilder:
        self._providers.append(config)
        return self

    def add_plugin(self, plugin: ProviderPlugin) -> RegistryBuilder:
        logger.debug(
            "Adding plugin %s (%d types, %d rules)",
            plugin.id,
            len(plugin.resource_types),
            len(plugin.connection_rules),
        )
        for rt in plugin.resource_types:
            self.register(rt.type_id, rt)
        self.add_rules(plugin.connection_rules)
        self.add_bindings(plugin.binding_generators)
        if plugin.provider_config is not None:
            self.add_provider(plugin.provider_config)
        return self

    def build(self) -> TypeRegistry:
        return TypeRegistry(self._types, self._rules, self._providers, self._bindings)


def build_registry(plugins: Iterable[ProviderPlugin]) -> TypeRegistry:
    builder = RegistryBuilder()
    for plugin in plugins:
        builder.add_plugin(plugin)
    return builder.build()


def builtin_plugins() -> list[ProviderPlugin]:
    from canvasform.providers.aws import plugin as aws_plugin
    from canvasform.providers.azurerm import plugin as azurerm_plugin

    return [azurerm_plugin, aws_plugin]


# Module-level default, built lazily on first access
_registry: TypeRegistry | None = None


def default_registry() -> TypeRegistry:
    """Return the shared registry of built-in and installed plugins, building it if needed."""
    global _registry
    if _registry is None:
        _registry = _load_default()
    return _registry


def reload_registry() -> TypeRegistry:
    """Force-rebuild the default registry (useful in tests or after installing plugins)."""
    global _registry
    _registry = _load_default()
    return _registry


def _load_default() -> TypeRegistry:
    from canvasform.plugins import discover_providers

    plugins = builtin_plugins()
    plugins.extend(discover_providers().values())
    return build_registry(plugins)
