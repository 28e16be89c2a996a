"""Shared fixtures for core tests."""

from __future__ import annotations

import pytest
from canvasform.diagram import (
    Connection,
    ConnectionRule,
    Diagram,
    ProjectConfig,
    PropertySchema,
    ReferenceDirective,
    ResourceInstance,
)
from canvasform.hcl import HclBlock
from canvasform.providers import ProviderConfig
from canvasform.registry import (
    ProviderPlugin,
    RegistryBuilder,
    ResourceSchema,
    ResourceType,
    TypeRegistry,
    build_registry,
    builtin_plugins,
)

CONTAINER = "toy/network/container"
SUBNET = "toy/network/subnet"
DISK = "toy/storage/disk"


def _generate_container(instance, ctx):
    return []


def _generate_subnet(instance, ctx):
    return [
        HclBlock(
            block_type="resource",
            labels=["toy_subnet", ctx.label],
            body={
                "name": ctx.name,
                "container_name": instance.properties["container_name"],
                "cidr": instance.properties.get("cidr", "10.0.0.0/24"),
            },
        )
    ]


def _generate_disk(instance, ctx):
    body = {"name": ctx.name, "size_gb": instance.properties.get("size_gb", 32)}
    if "subnet_id" in instance.properties:
        body["subnet_id"] = instance.properties["subnet_id"]
    return [HclBlock(block_type="resource", labels=["toy_disk", ctx.label], body=body)]


def toy_plugin(extra_rules: tuple[ConnectionRule, ...] = ()) -> ProviderPlugin:
    return ProviderPlugin(
        id="toy",
        name="Toy",
        resource_types=(
            ResourceType(
                schema=ResourceSchema(
                    type_id=CONTAINER,
                    provider="toy",
                    display_name="Network Container",
                    category="network",
                    terraform_type="_container",
                    provider_scope={"account": "account_id"},
                ),
                generate=_generate_container,
            ),
            ResourceType(
                schema=ResourceSchema(
                    type_id=SUBNET,
                    provider="toy",
                    display_name="Subnet",
                    category="network",
                    terraform_type="toy_subnet",
                    properties=[PropertySchema(key="container_name", type="reference", required=True)],
                ),
                generate=_generate_subnet,
            ),
            ResourceType(
                schema=ResourceSchema(
                    type_id=DISK,
                    provider="toy",
                    display_name="Disk",
                    category="storage",
                    terraform_type="toy_disk",
                    properties=[PropertySchema(key="size_gb", type="number", default=64)],
                ),
                generate=_generate_disk,
            ),
        ),
        connection_rules=(
            ConnectionRule(
                source_type=CONTAINER,
                source_handle="out",
                target_type=SUBNET,
                target_handle="in",
                creates_reference=ReferenceDirective(side="target", property_key="container_name"),
            ),
            ConnectionRule(
                source_type=SUBNET,
                source_handle="disks",
                target_type=DISK,
                target_handle="subnet",
                creates_reference=ReferenceDirective(side="target", property_key="subnet_id"),
            ),
        )
        + extra_rules,
        provider_config=ProviderConfig(
            id="toy",
            display_name="Toy Cloud",
            source="example/toy",
            version="~> 1.0",
            default_config={"region": "local"},
        ),
    )


@pytest.fixture
def toy_registry() -> TypeRegistry:
    return RegistryBuilder().add_plugin(toy_plugin()).build()


@pytest.fixture
def make_toy_registry():
    """Build a toy registry with extra rules appended after the built-in toy rules."""

    def _make(*extra_rules: ConnectionRule) -> TypeRegistry:
        return RegistryBuilder().add_plugin(toy_plugin(tuple(extra_rules))).build()

    return _make


@pytest.fixture
def builtin_registry() -> TypeRegistry:
    return build_registry(builtin_plugins())


@pytest.fixture
def toy_diagram() -> Diagram:
    """A virtual container feeding a subnet, plus a disk attached to the subnet."""
    return Diagram(
        name="Toy",
        nodes=[
            ResourceInstance(id="net", type_id=CONTAINER, name="core-net", properties={"account": "acct-1"}),
            ResourceInstance(id="sub", type_id=SUBNET, name="app"),
            ResourceInstance(id="disk", type_id=DISK, name="data"),
        ],
        edges=[
            Connection(source="net", source_handle="out", target="sub", target_handle="in"),
            Connection(source="sub", source_handle="disks", target="disk", target_handle="subnet"),
        ],
        project=ProjectConfig(),
    )


@pytest.fixture
def azure_diagram() -> Diagram:
    return Diagram(
        name="Web App",
        nodes=[
            ResourceInstance(
                id="sub",
                type_id="azurerm/core/subscription",
                name="Production",
                properties={"subscription_id": "00000000-0000-0000-0000-000000000001"},
            ),
            ResourceInstance(id="rg", type_id="azurerm/core/resource_group", name="web", properties={"location": "westeurope"}),
            ResourceInstance(id="vnet", type_id="azurerm/networking/virtual_network", name="hub"),
            ResourceInstance(id="snet", type_id="azurerm/networking/subnet", name="app"),
            ResourceInstance(id="plan", type_id="azurerm/compute/app_service_plan", name="plan"),
            ResourceInstance(
                id="app",
                type_id="azurerm/compute/app_service",
                name="frontend",
                properties={"app_settings": {"GREETING": 'say "hi"'}},
            ),
        ],
        edges=[
            Connection(source="sub", source_handle="rg-out", target="rg", target_handle="subscription-in"),
            Connection(source="rg", source_handle="rg-out", target="vnet", target_handle="rg-in"),
            Connection(source="rg", source_handle="rg-out", target="snet", target_handle="rg-in"),
            Connection(source="vnet", source_handle="subnets-out", target="snet", target_handle="vnet-in"),
            Connection(source="rg", source_handle="rg-out", target="plan", target_handle="rg-in"),
            Connection(source="rg", source_handle="rg-out", target="app", target_handle="rg-in"),
            Connection(source="plan", source_handle="apps-out", target="app", target_handle="plan-in"),
        ],
    )
