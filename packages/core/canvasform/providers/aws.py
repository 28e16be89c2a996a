"""AWS provider plugin."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from canvasform.compiler import GeneratorError, require_property
from canvasform.diagram import ConnectionRule, Expression, PropertySchema, ReferenceDirective
from canvasform.hcl import HclBlock, render_value
from canvasform.providers import ProviderConfig
from canvasform.registry import ProviderPlugin, ResourceSchema, ResourceType

if TYPE_CHECKING:
    from canvasform.compiler import GenerationContext
    from canvasform.diagram import ResourceInstance

VPC = "aws/networking/vpc"
SUBNET = "aws/networking/subnet"
SECURITY_GROUP = "aws/networking/security_group"
INSTANCE = "aws/compute/instance"

provider_config = ProviderConfig(
    id="aws",
    display_name="Amazon Web Services",
    source="hashicorp/aws",
    version="~> 5.0",
    config_schema=[PropertySchema(key="region", label="Region", required=True, default="us-east-1")],
    default_config={"region": "us-east-1"},
)


def _resource(ctx: GenerationContext, terraform_type: str, body: dict[str, Any]) -> HclBlock:
    return HclBlock(block_type="resource", labels=[terraform_type, ctx.label], body=body)


def _tags(instance: ResourceInstance, ctx: GenerationContext) -> Any:
    """Name tag plus the node's own tags, merged over the project's common tags when there are any."""
    tags = {"Name": ctx.name}
    tags.update(instance.properties.get("tags") or {})
    if ctx.common_tags is None:
        return tags
    # tags is always a top-level attribute, so the map renders one level deep
    return Expression(text=f"merge({ctx.common_tags}, {render_value(tags, 1)})")


def generate_vpc(instance: ResourceInstance, ctx: GenerationContext) -> list[HclBlock]:
    props = instance.properties
    body = {
        "cidr_block": ctx.property_value("cidr_block", props.get("cidr_block", "10.0.0.0/16")),
        "enable_dns_hostnames": bool(props.get("enable_dns_hostnames", True)),
        "enable_dns_support": True,
        "tags": _tags(instance, ctx),
    }
    return [_resource(ctx, "aws_vpc", body)]


def generate_subnet(instance: ResourceInstance, ctx: GenerationContext) -> list[HclBlock]:
    props = instance.properties
    body: dict[str, Any] = {
        "vpc_id": require_property(instance, "vpc_id"),
        "cidr_block": props.get("cidr_block", "10.0.1.0/24"),
    }
    if props.get("availability_zone"):
        body["availability_zone"] = props["availability_zone"]
    if props.get("map_public_ip_on_launch"):
        body["map_public_ip_on_launch"] = True
    body["tags"] = _tags(instance, ctx)
    return [_resource(ctx, "aws_subnet", body)]


def _sg_rule(kind: str, rule: dict[str, Any]) -> HclBlock:
    port = rule.get("port")
    from_port = rule.get("from_port", port)
    to_port = rule.get("to_port", port)
    if from_port is None or to_port is None:
        raise GeneratorError(f"{kind} rule needs port or from_port/to_port")
    return HclBlock(
        block_type=kind,
        body={
            "from_port": int(from_port),
            "to_port": int(to_port),
            "protocol": rule.get("protocol", "tcp"),
            "cidr_blocks": list(rule.get("cidr_blocks") or ["0.0.0.0/0"]),
        },
    )


def generate_security_group(instance: ResourceInstance, ctx: GenerationContext) -> list[HclBlock]:
    props = instance.properties
    body: dict[str, Any] = {
        "name": ctx.name,
        "description": props.get("description", f"Managed security group for {ctx.name}"),
        "vpc_id": require_property(instance, "vpc_id"),
        "tags": _tags(instance, ctx),
    }
    ingress = [_sg_rule("ingress", r) for r in props.get("ingress") or []]
    if ingress:
        body["ingress"] = ingress
    body["egress"] = HclBlock(
        block_type="egress",
        body={"from_port": 0, "to_port": 0, "protocol": "-1", "cidr_blocks": ["0.0.0.0/0"]},
    )
    return [_resource(ctx, "aws_security_group", body)]


def generate_instance(instance: ResourceInstance, ctx: GenerationContext) -> list[HclBlock]:
    props = instance.properties
    body: dict[str, Any] = {
        "ami": ctx.property_value("ami", require_property(instance, "ami")),
        "instance_type": ctx.property_value("instance_type", props.get("instance_type", "t3.micro")),
        "subnet_id": require_property(instance, "subnet_id"),
    }
    if props.get("security_group_id"):
        body["vpc_security_group_ids"] = [props["security_group_id"]]
    if props.get("key_name"):
        body["key_name"] = props["key_name"]
    body["tags"] = _tags(instance, ctx)
    return [_resource(ctx, "aws_instance", body)]


def _schema(type_id: str, display_name: str, terraform_type: str, *properties: PropertySchema) -> ResourceSchema:
    return ResourceSchema(
        type_id=type_id,
        provider="aws",
        display_name=display_name,
        category=type_id.split("/")[1],
        terraform_type=terraform_type,
        properties=list(properties),
    )


resource_types = (
    ResourceType(
        schema=_schema(
            VPC,
            "VPC",
            "aws_vpc",
            PropertySchema(key="cidr_block", label="CIDR Block", type="cidr", required=True, default="10.0.0.0/16"),
        ),
        generate=generate_vpc,
    ),
    ResourceType(
        schema=_schema(
            SUBNET,
            "Subnet",
            "aws_subnet",
            PropertySchema(key="vpc_id", label="VPC", type="reference", required=True),
            PropertySchema(key="cidr_block", label="CIDR Block", type="cidr", required=True, default="10.0.1.0/24"),
            PropertySchema(key="availability_zone", label="Availability Zone"),
        ),
        generate=generate_subnet,
    ),
    ResourceType(
        schema=_schema(
            SECURITY_GROUP,
            "Security Group",
            "aws_security_group",
            PropertySchema(key="vpc_id", label="VPC", type="reference", required=True),
            PropertySchema(key="ingress", label="Ingress Rules", type="array"),
        ),
        generate=generate_security_group,
    ),
    ResourceType(
        schema=_schema(
            INSTANCE,
            "EC2 Instance",
            "aws_instance",
            PropertySchema(key="ami", label="AMI", required=True),
            PropertySchema(key="instance_type", label="Instance Type", type="select", default="t3.micro"),
            PropertySchema(key="subnet_id", label="Subnet", type="reference", required=True),
            PropertySchema(key="security_group_id", label="Security Group", type="reference"),
        ),
        generate=generate_instance,
    ),
)

connection_rules = (
    ConnectionRule(
        source_type=VPC,
        source_handle="subnets-out",
        target_type=SUBNET,
        target_handle="vpc-in",
        creates_reference=ReferenceDirective(side="target", property_key="vpc_id"),
        label="Contains subnet",
    ),
    ConnectionRule(
        source_type=VPC,
        source_handle="sg-out",
        target_type=SECURITY_GROUP,
        target_handle="vpc-in",
        creates_reference=ReferenceDirective(side="target", property_key="vpc_id"),
        label="Scopes security group",
    ),
    ConnectionRule(
        source_type=SUBNET,
        source_handle="instances-out",
        target_type=INSTANCE,
        target_handle="subnet-in",
        creates_reference=ReferenceDirective(side="target", property_key="subnet_id"),
        label="Places instance",
    ),
    ConnectionRule(
        source_type=INSTANCE,
        source_handle="sg-out",
        target_type=SECURITY_GROUP,
        target_handle="attach-in",
        creates_reference=ReferenceDirective(side="source", property_key="security_group_id"),
        label="Attaches security group",
    ),
)

plugin = ProviderPlugin(
    id="aws",
    name="AWS",
    resource_types=resource_types,
    connection_rules=connection_rules,
    provider_config=provider_config,
)
