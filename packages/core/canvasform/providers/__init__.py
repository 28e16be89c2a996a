"""Provider configuration: required_providers entries and provider blocks.

Each provider plugin registers one :class:`ProviderConfig`. The
:class:`ProviderBlockBuilder` works out which providers a diagram uses, folds
provider-scoped values from virtual resources (a subscription node's
``subscription_id``) into their configuration, and produces the
``terraform {}`` and ``provider`` blocks.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from canvasform.diagram import Backend, Expression, Finding, PropertySchema, Reference, ResourceInstance
from canvasform.hcl import HclBlock

if TYPE_CHECKING:
    from canvasform.registry import TypeRegistry

logger = logging.getLogger(__name__)

_VARIABLE_REF = re.compile(r"(var|local)\.[A-Za-z_][A-Za-z0-9_-]*")


class ProviderConfig(BaseModel):
    id: str
    display_name: str
    source: str
    version: str
    config_schema: list[PropertySchema] = Field(default_factory=list)
    default_config: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def generate_provider_block(self, config: Mapping[str, Any]) -> HclBlock:
        body = {k: config_value(v) for k, v in config.items() if v not in (None, "")}
        return HclBlock(block_type="provider", labels=[self.id], body=body)

    def generate_required_provider(self) -> tuple[str, dict[str, str]]:
        return self.id, {"source": self.source, "version": self.version}


def config_value(value: Any) -> Any:
    """Provider settings given as a bare ``var.x`` or ``local.x`` are expressions, not strings."""
    if isinstance(value, str) and _VARIABLE_REF.fullmatch(value):
        return Expression(text=value)
    return value


@dataclass
class ProviderBlocks:
    required_providers: list[tuple[str, dict[str, str]]] = field(default_factory=list)
    provider_blocks: list[HclBlock] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)

    @property
    def provider_ids(self) -> list[str]:
        return [name for name, _ in self.required_providers]


class ProviderBlockBuilder:
    """Builds provider declarations for the providers a diagram actually uses."""

    def __init__(self, registry: TypeRegistry):
        self._registry = registry

    def build(
        self,
        resources: Sequence[ResourceInstance],
        project_configs: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> ProviderBlocks:
        result = ProviderBlocks()
        configs = self._dedupe(result.findings)

        active: list[str] = []
        for resource in resources:
            schema = self._registry.schema(resource.type_id)
            if schema is not None and schema.provider not in active:
                active.append(schema.provider)

        scoped = self._provider_scope_values(resources)

        for provider_id in active:
            config = configs.get(provider_id)
            if config is None:
                result.findings.append(
                    Finding(
                        code="missing_provider",
                        severity="warning",
                        message=f"No provider configuration registered for {provider_id!r}",
                    )
                )
                continue
            merged: dict[str, Any] = dict(config.default_config)
            merged.update((project_configs or {}).get(provider_id, {}))
            merged.update(scoped.get(provider_id, {}))
            result.required_providers.append(config.generate_required_provider())
            result.provider_blocks.append(config.generate_provider_block(merged))

        return result

    def _dedupe(self, findings: list[Finding]) -> dict[str, ProviderConfig]:
        configs: dict[str, ProviderConfig] = {}
        for config in self._registry.providers:
            if config.id in configs:
                findings.append(
                    Finding(
                        code="duplicate_provider",
                        severity="warning",
                        message=f"Provider {config.id!r} registered more than once; using the first registration",
                    )
                )
                continue
            configs[config.id] = config
        return configs

    def _provider_scope_values(self, resources: Sequence[ResourceInstance]) -> dict[str, dict[str, Any]]:
        """Pre-pass over virtual resources that feed provider configuration."""
        scoped: dict[str, dict[str, Any]] = {}
        for resource in resources:
            schema = self._registry.schema(resource.type_id)
            if schema is None or not schema.is_virtual or not schema.provider_scope:
                continue
            values = scoped.setdefault(schema.provider, {})
            for prop_key, config_key in schema.provider_scope.items():
                value = resource.properties.get(prop_key)
                if value in (None, "") or isinstance(value, Reference):
                    continue
                if config_key in values:
                    logger.warning(
                        "Ignoring %s from %s: %s already set by an earlier node",
                        prop_key,
                        resource.id,
                        config_key,
                    )
                    continue
                values[config_key] = value
        return scoped


def terraform_block(
    required_providers: Sequence[tuple[str, dict[str, str]]],
    terraform_version: str = ">= 1.0",
    backend: Backend | None = None,
) -> HclBlock:
    body: dict[str, Any] = {"required_version": terraform_version}
    if required_providers:
        body["required_providers"] = HclBlock(block_type="required_providers", body=dict(required_providers))
    if backend is not None:
        body["backend"] = HclBlock(block_type="backend", labels=[backend.type], body=dict(backend.config))
    return HclBlock(block_type="terraform", body=body)
