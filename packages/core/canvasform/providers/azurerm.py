"""Azure (azurerm) provider plugin."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from canvasform.compiler import GeneratorError, require_property
from canvasform.diagram import (
    ConnectionRule,
    NamingConstraints,
    PropertySchema,
    PropertyValidation,
    Reference,
    ReferenceDirective,
)
from canvasform.hcl import HclBlock
from canvasform.providers import ProviderConfig
from canvasform.registry import ProviderPlugin, ResourceSchema, ResourceType

if TYPE_CHECKING:
    from canvasform.compiler import GenerationContext
    from canvasform.diagram import ResourceInstance

SUBSCRIPTION = "azurerm/core/subscription"
RESOURCE_GROUP = "azurerm/core/resource_group"
VIRTUAL_NETWORK = "azurerm/networking/virtual_network"
SUBNET = "azurerm/networking/subnet"
NETWORK_SECURITY_GROUP = "azurerm/networking/network_security_group"
APP_SERVICE_PLAN = "azurerm/compute/app_service_plan"
APP_SERVICE = "azurerm/compute/app_service"
STORAGE_ACCOUNT = "azurerm/storage/storage_account"

_UUID = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"


class AzureRMProviderConfig(ProviderConfig):
    def generate_provider_block(self, config: Mapping[str, Any]) -> HclBlock:
        block = super().generate_provider_block(config)
        # azurerm refuses to initialise without an (empty) features block
        block.body["features"] = HclBlock(block_type="features")
        return block


provider_config = AzureRMProviderConfig(
    id="azurerm",
    display_name="Azure Resource Manager",
    source="hashicorp/azurerm",
    version="~> 4.0",
    config_schema=[
        PropertySchema(
            key="subscription_id",
            label="Subscription ID",
            required=True,
            validation=PropertyValidation(pattern=_UUID, pattern_message="Must be a valid UUID"),
        ),
    ],
    default_config={"subscription_id": ""},
)


def _resource(ctx: GenerationContext, terraform_type: str, body: dict[str, Any]) -> HclBlock:
    return HclBlock(block_type="resource", labels=[terraform_type, ctx.label], body=body)


def _resource_group(instance: ResourceInstance) -> Any:
    return require_property(instance, "resource_group_name")


def _location(instance: ResourceInstance, resource_group: Any) -> Any:
    location = instance.properties.get("location")
    if location:
        return location
    if isinstance(resource_group, Reference):
        return resource_group.with_attribute("location")
    raise GeneratorError(f"{instance.id} needs a location or a connected resource group")


def _tags(instance: ResourceInstance, ctx: GenerationContext) -> dict[str, Any]:
    tags = instance.properties.get("tags")
    if tags:
        return {"tags": dict(tags)}
    if ctx.common_tags is not None:
        return {"tags": ctx.common_tags}
    return {}


def generate_subscription(instance: ResourceInstance, ctx: GenerationContext) -> list[HclBlock]:
    # Virtual: subscription_id is folded into the provider block instead
    return []


def generate_resource_group(instance: ResourceInstance, ctx: GenerationContext) -> list[HclBlock]:
    body: dict[str, Any] = {
        "name": ctx.name,
        "location": ctx.property_value("location", instance.properties.get("location", "eastus")),
    }
    body.update(_tags(instance, ctx))
    return [_resource(ctx, "azurerm_resource_group", body)]


def generate_virtual_network(instance: ResourceInstance, ctx: GenerationContext) -> list[HclBlock]:
    props = instance.properties
    rg = _resource_group(instance)
    body: dict[str, Any] = {
        "name": ctx.name,
        "resource_group_name": rg,
        "location": _location(instance, rg),
        "address_space": list(props.get("address_space") or ["10.0.0.0/16"]),
    }
    if props.get("dns_servers"):
        body["dns_servers"] = list(props["dns_servers"])
    body.update(_tags(instance, ctx))
    return [_resource(ctx, "azurerm_virtual_network", body)]


def generate_subnet(instance: ResourceInstance, ctx: GenerationContext) -> list[HclBlock]:
    props = instance.properties
    body: dict[str, Any] = {
        "name": ctx.name,
        "resource_group_name": _resource_group(instance),
        "virtual_network_name": require_property(instance, "virtual_network_name"),
        "address_prefixes": list(props.get("address_prefixes") or ["10.0.1.0/24"]),
    }
    if props.get("service_endpoints"):
        body["service_endpoints"] = list(props["service_endpoints"])
    blocks = [_resource(ctx, "azurerm_subnet", body)]

    nsg = props.get("network_security_group_id")
    if nsg:
        blocks.append(
            HclBlock(
                block_type="resource",
                labels=["azurerm_subnet_network_security_group_association", f"{ctx.label}_nsg"],
                body={
                    "subnet_id": Reference(address=f"azurerm_subnet.{ctx.label}", attribute="id"),
                    "network_security_group_id": nsg,
                },
            )
        )
    return blocks


# application_stack attributes are named <stack>_version
RUNTIME_STACKS = ("python", "node", "dotnet", "java", "php", "ruby", "go")

_RULE_DEFAULTS = {
    "direction": "Inbound",
    "access": "Allow",
    "protocol": "Tcp",
    "source_port_range": "*",
    "destination_port_range": "*",
    "source_address_prefix": "*",
    "destination_address_prefix": "*",
}
_RULE_KEYS = frozenset(_RULE_DEFAULTS) | {
    "name",
    "priority",
    "description",
    "source_port_ranges",
    "destination_port_ranges",
    "source_address_prefixes",
    "destination_address_prefixes",
}


def generate_network_security_group(instance: ResourceInstance, ctx: GenerationContext) -> list[HclBlock]:
    rg = _resource_group(instance)
    body: dict[str, Any] = {
        "name": ctx.name,
        "resource_group_name": rg,
        "location": _location(instance, rg),
    }
    rules = []
    for i, rule in enumerate(instance.properties.get("security_rules") or []):
        if "name" not in rule or "priority" not in rule:
            raise GeneratorError(f"security rule #{i + 1} on {instance.id} needs a name and a priority")
        unknown = sorted(set(rule) - _RULE_KEYS)
        if unknown:
            raise GeneratorError(f"security rule #{i + 1} on {instance.id} has unknown keys: {', '.join(unknown)}")
        rules.append(HclBlock(block_type="security_rule", body={**_RULE_DEFAULTS, **rule}))
    if rules:
        body["security_rule"] = rules
    body.update(_tags(instance, ctx))
    return [_resource(ctx, "azurerm_network_security_group", body)]


def generate_app_service_plan(instance: ResourceInstance, ctx: GenerationContext) -> list[HclBlock]:
    props = instance.properties
    rg = _resource_group(instance)
    body: dict[str, Any] = {
        "name": ctx.name,
        "resource_group_name": rg,
        "location": _location(instance, rg),
        "os_type": props.get("os_type", "Linux"),
        "sku_name": ctx.property_value("sku_name", props.get("sku_name", "B1")),
    }
    body.update(_tags(instance, ctx))
    return [_resource(ctx, "azurerm_service_plan", body)]


def generate_app_service(instance: ResourceInstance, ctx: GenerationContext) -> list[HclBlock]:
    props = instance.properties
    rg = _resource_group(instance)
    site_config: dict[str, Any] = {"always_on": bool(props.get("always_on", False))}
    if props.get("runtime_stack") and props.get("runtime_version"):
        if props["runtime_stack"] not in RUNTIME_STACKS:
            raise GeneratorError(f"{instance.id}: unsupported runtime stack {props['runtime_stack']!r}")
        stack = HclBlock(
            block_type="application_stack",
            body={f"{props['runtime_stack']}_version": props["runtime_version"]},
        )
        site_config["application_stack"] = stack
    body: dict[str, Any] = {
        "name": ctx.name,
        "resource_group_name": rg,
        "location": _location(instance, rg),
        "service_plan_id": require_property(instance, "service_plan_id"),
        "https_only": bool(props.get("https_only", True)),
    }
    if props.get("app_settings"):
        body["app_settings"] = dict(props["app_settings"])
    body["site_config"] = HclBlock(block_type="site_config", body=site_config)
    body.update(_tags(instance, ctx))
    return [_resource(ctx, "azurerm_linux_web_app", body)]


def generate_storage_account(instance: ResourceInstance, ctx: GenerationContext) -> list[HclBlock]:
    props = instance.properties
    rg = _resource_group(instance)
    body: dict[str, Any] = {
        "name": ctx.name,
        "resource_group_name": rg,
        "location": _location(instance, rg),
        "account_tier": ctx.property_value("account_tier", props.get("account_tier", "Standard")),
        "account_replication_type": props.get("account_replication_type", "LRS"),
        "min_tls_version": "TLS1_2",
    }
    body.update(_tags(instance, ctx))
    return [_resource(ctx, "azurerm_storage_account", body)]


def _schema(type_id: str, display_name: str, terraform_type: str, *properties: PropertySchema, **kw) -> ResourceSchema:
    _, category, _ = type_id.split("/")
    return ResourceSchema(
        type_id=type_id,
        provider="azurerm",
        display_name=display_name,
        category=category,
        terraform_type=terraform_type,
        properties=list(properties),
        **kw,
    )


_RG_PROP = PropertySchema(key="resource_group_name", label="Resource Group", type="reference", required=True)

resource_types = (
    ResourceType(
        schema=_schema(
            SUBSCRIPTION,
            "Subscription",
            "_subscription",
            PropertySchema(key="display_name", label="Display Name"),
            PropertySchema(
                key="subscription_id",
                label="Subscription ID",
                required=True,
                validation=PropertyValidation(pattern=_UUID, pattern_message="Must be a valid UUID"),
            ),
            description="Top-level billing and access boundary",
            provider_scope={"subscription_id": "subscription_id"},
        ),
        generate=generate_subscription,
    ),
    ResourceType(
        schema=_schema(
            RESOURCE_GROUP,
            "Resource Group",
            "azurerm_resource_group",
            PropertySchema(key="location", label="Location", required=True, default="eastus"),
            naming_constraints=NamingConstraints(max_length=90),
        ),
        generate=generate_resource_group,
    ),
    ResourceType(
        schema=_schema(
            VIRTUAL_NETWORK,
            "Virtual Network",
            "azurerm_virtual_network",
            _RG_PROP,
            PropertySchema(key="address_space", label="Address Space", type="array", default=["10.0.0.0/16"]),
            PropertySchema(key="dns_servers", label="DNS Servers", type="array"),
        ),
        generate=generate_virtual_network,
    ),
    ResourceType(
        schema=_schema(
            SUBNET,
            "Subnet",
            "azurerm_subnet",
            _RG_PROP,
            PropertySchema(key="virtual_network_name", label="Virtual Network", type="reference", required=True),
            PropertySchema(key="address_prefixes", label="Address Prefixes", type="array", default=["10.0.1.0/24"]),
            PropertySchema(key="service_endpoints", label="Service Endpoints", type="array"),
            PropertySchema(key="network_security_group_id", label="Network Security Group", type="reference"),
        ),
        generate=generate_subnet,
    ),
    ResourceType(
        schema=_schema(
            NETWORK_SECURITY_GROUP,
            "Network Security Group",
            "azurerm_network_security_group",
            _RG_PROP,
            PropertySchema(key="security_rules", label="Security Rules", type="array"),
        ),
        generate=generate_network_security_group,
    ),
    ResourceType(
        schema=_schema(
            APP_SERVICE_PLAN,
            "App Service Plan",
            "azurerm_service_plan",
            _RG_PROP,
            PropertySchema(key="os_type", label="OS Type", type="select", default="Linux"),
            PropertySchema(key="sku_name", label="SKU", type="select", default="B1"),
        ),
        generate=generate_app_service_plan,
    ),
    ResourceType(
        schema=_schema(
            APP_SERVICE,
            "App Service",
            "azurerm_linux_web_app",
            _RG_PROP,
            PropertySchema(key="service_plan_id", label="App Service Plan", type="reference", required=True),
            PropertySchema(key="https_only", label="HTTPS Only", type="boolean", default=True),
            PropertySchema(key="always_on", label="Always On", type="boolean"),
            PropertySchema(key="runtime_stack", label="Runtime Stack", type="select"),
            PropertySchema(key="runtime_version", label="Runtime Version"),
            PropertySchema(key="app_settings", label="App Settings", type="key-value-map"),
        ),
        generate=generate_app_service,
    ),
    ResourceType(
        schema=_schema(
            STORAGE_ACCOUNT,
            "Storage Account",
            "azurerm_storage_account",
            _RG_PROP,
            PropertySchema(key="account_tier", label="Account Tier", type="select", default="Standard"),
            PropertySchema(key="account_replication_type", label="Replication", type="select", default="LRS"),
            naming_constraints=NamingConstraints(lowercase=True, no_hyphens=True, max_length=24),
        ),
        generate=generate_storage_account,
    ),
)


def _rg_rule(target_type: str, label: str) -> ConnectionRule:
    return ConnectionRule(
        source_type=RESOURCE_GROUP,
        source_handle="rg-out",
        target_type=target_type,
        target_handle="rg-in",
        creates_reference=ReferenceDirective(side="target", property_key="resource_group_name", attribute="name"),
        label=label,
    )


connection_rules = (
    ConnectionRule(
        source_type=SUBSCRIPTION,
        source_handle="rg-out",
        target_type=RESOURCE_GROUP,
        target_handle="subscription-in",
        label="Contains resource group",
    ),
    _rg_rule(VIRTUAL_NETWORK, "Contains virtual network"),
    _rg_rule(SUBNET, "Contains subnet"),
    _rg_rule(NETWORK_SECURITY_GROUP, "Contains network security group"),
    _rg_rule(APP_SERVICE_PLAN, "Contains app service plan"),
    _rg_rule(APP_SERVICE, "Contains app service"),
    _rg_rule(STORAGE_ACCOUNT, "Contains storage account"),
    ConnectionRule(
        source_type=VIRTUAL_NETWORK,
        source_handle="subnets-out",
        target_type=SUBNET,
        target_handle="vnet-in",
        creates_reference=ReferenceDirective(side="target", property_key="virtual_network_name", attribute="name"),
        label="Contains subnet",
    ),
    ConnectionRule(
        source_type=NETWORK_SECURITY_GROUP,
        source_handle="nsg-out",
        target_type=SUBNET,
        target_handle="nsg-in",
        creates_reference=ReferenceDirective(side="target", property_key="network_security_group_id"),
        label="Associates NSG with subnet",
    ),
    ConnectionRule(
        source_type=APP_SERVICE_PLAN,
        source_handle="apps-out",
        target_type=APP_SERVICE,
        target_handle="plan-in",
        creates_reference=ReferenceDirective(side="target", property_key="service_plan_id"),
        label="Hosts app",
    ),
)

plugin = ProviderPlugin(
    id="azurerm",
    name="Azure",
    resource_types=resource_types,
    connection_rules=connection_rules,
    provider_config=provider_config,
)
