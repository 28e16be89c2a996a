"""End-to-end tests for the built-in azurerm and aws plugins."""

import re

from canvasform.compiler import DiagramCompiler
from canvasform.diagram import Connection, Diagram, NamingConvention, ProjectConfig, ResourceInstance


def _attr(document: str, key: str, value: str) -> bool:
    """True when ``key = value`` appears with any alignment padding."""
    return re.search(rf"^\s*{re.escape(key)}\s+= {re.escape(value)}$", document, re.MULTILINE) is not None


class TestAzure:
    def test_compiles_cleanly(self, builtin_registry, azure_diagram):
        result = DiagramCompiler(builtin_registry).compile(azure_diagram)
        assert result.findings == []
        assert list(result.files) == ["terraform.tf", "providers.tf", "main.tf"]

    def test_subscription_folds_into_provider(self, builtin_registry, azure_diagram):
        result = DiagramCompiler(builtin_registry).compile(azure_diagram)
        assert result.files["providers.tf"] == (
            'provider "azurerm" {\n'
            '  subscription_id = "00000000-0000-0000-0000-000000000001"\n'
            "\n"
            "  features {}\n"
            "}\n"
        )
        assert "_subscription" not in result.document
        assert 'source  = "hashicorp/azurerm"' in result.files["terraform.tf"]

    def test_connections_become_references(self, builtin_registry, azure_diagram):
        doc = DiagramCompiler(builtin_registry).compile(azure_diagram).document
        assert _attr(doc, "resource_group_name", "azurerm_resource_group.web.name")
        assert _attr(doc, "location", "azurerm_resource_group.web.location")
        assert _attr(doc, "virtual_network_name", "azurerm_virtual_network.hub.name")
        assert _attr(doc, "service_plan_id", "azurerm_service_plan.plan.id")

    def test_resource_blocks(self, builtin_registry, azure_diagram):
        doc = DiagramCompiler(builtin_registry).compile(azure_diagram).document
        assert 'resource "azurerm_resource_group" "web" {' in doc
        assert _attr(doc, "location", '"westeurope"')
        assert 'resource "azurerm_service_plan" "plan" {' in doc
        assert 'resource "azurerm_linux_web_app" "frontend" {' in doc
        assert "  site_config {\n    always_on = false\n  }" in doc

    def test_app_settings_escaped(self, builtin_registry, azure_diagram):
        doc = DiagramCompiler(builtin_registry).compile(azure_diagram).document
        assert 'GREETING = "say \\"hi\\""' in doc

    def test_naming_convention(self, builtin_registry, azure_diagram):
        azure_diagram.project = ProjectConfig(naming=NamingConvention(enabled=True, template="{env}-{name}", env="dev"))
        doc = DiagramCompiler(builtin_registry).compile(azure_diagram).document
        assert 'resource "azurerm_resource_group" "dev_web" {' in doc
        assert _attr(doc, "name", '"dev-web"')
        assert _attr(doc, "resource_group_name", "azurerm_resource_group.dev_web.name")

    def test_common_tags(self, builtin_registry, azure_diagram):
        azure_diagram.project = ProjectConfig(common_tags={"owner": "platform"})
        result = DiagramCompiler(builtin_registry).compile(azure_diagram)
        assert "common_tags" in result.files["locals.tf"]
        assert _attr(result.files["main.tf"], "tags", "local.common_tags")

    def test_project_provider_config_overridden_by_subscription_node(self, builtin_registry, azure_diagram):
        azure_diagram.project = ProjectConfig(provider_configs={"azurerm": {"subscription_id": "var.sub"}})
        result = DiagramCompiler(builtin_registry).compile(azure_diagram)
        assert "var.sub" not in result.files["providers.tf"]

    def test_project_provider_config_used_without_subscription_node(self, builtin_registry, azure_diagram):
        azure_diagram.nodes = [n for n in azure_diagram.nodes if n.id != "sub"]
        azure_diagram.edges = [e for e in azure_diagram.edges if e.source != "sub"]
        azure_diagram.project = ProjectConfig(provider_configs={"azurerm": {"subscription_id": "var.sub"}})
        result = DiagramCompiler(builtin_registry).compile(azure_diagram)
        assert _attr(result.files["providers.tf"], "subscription_id", "var.sub")

    def test_storage_account_naming_constraints(self, builtin_registry):
        diagram = Diagram(
            nodes=[
                ResourceInstance(id="rg", type_id="azurerm/core/resource_group", name="data"),
                ResourceInstance(id="st", type_id="azurerm/storage/storage_account", name="Media-Store"),
            ],
            edges=[Connection(source="rg", source_handle="rg-out", target="st", target_handle="rg-in")],
        )
        doc = DiagramCompiler(builtin_registry).compile(diagram).document
        assert 'resource "azurerm_storage_account" "mediastore" {' in doc
        assert _attr(doc, "name", '"mediastore"')

    def test_nsg_association(self, builtin_registry, azure_diagram):
        azure_diagram.nodes.append(
            ResourceInstance(
                id="nsg",
                type_id="azurerm/networking/network_security_group",
                name="edge",
                properties={"security_rules": [{"name": "https", "priority": 100, "destination_port_range": "443"}]},
            )
        )
        azure_diagram.edges += [
            Connection(source="rg", source_handle="rg-out", target="nsg", target_handle="rg-in"),
            Connection(source="nsg", source_handle="nsg-out", target="snet", target_handle="nsg-in"),
        ]
        result = DiagramCompiler(builtin_registry).compile(azure_diagram)
        assert result.ok
        doc = result.document
        assert 'resource "azurerm_subnet_network_security_group_association" "app_nsg" {' in doc
        assert _attr(doc, "network_security_group_id", "azurerm_network_security_group.edge.id")
        assert _attr(doc, "subnet_id", "azurerm_subnet.app.id")
        assert "  security_rule {" in doc
        assert _attr(doc, "destination_port_range", '"443"')

    def test_bad_security_rule_fails_only_that_resource(self, builtin_registry, azure_diagram):
        azure_diagram.nodes.append(
            ResourceInstance(
                id="nsg",
                type_id="azurerm/networking/network_security_group",
                name="edge",
                properties={"security_rules": [{"name": "no-priority"}]},
            )
        )
        azure_diagram.edges.append(Connection(source="rg", source_handle="rg-out", target="nsg", target_handle="rg-in"))
        result = DiagramCompiler(builtin_registry).compile(azure_diagram)
        assert [(f.code, f.node_id) for f in result.errors] == [("generator_failed", "nsg")]
        assert 'resource "azurerm_linux_web_app" "frontend"' in result.document

    def test_unknown_security_rule_key(self, builtin_registry, azure_diagram):
        hostile = 'x = 1\n}\nresource "evil" "y" {\n  a'
        azure_diagram.nodes.append(
            ResourceInstance(
                id="nsg",
                type_id="azurerm/networking/network_security_group",
                name="edge",
                properties={"security_rules": [{"name": "https", "priority": 100, hostile: "v"}]},
            )
        )
        azure_diagram.edges.append(Connection(source="rg", source_handle="rg-out", target="nsg", target_handle="rg-in"))
        result = DiagramCompiler(builtin_registry).compile(azure_diagram)
        assert [(f.code, f.node_id) for f in result.errors] == [("generator_failed", "nsg")]
        assert "unknown keys" in result.errors[0].message
        assert 'resource "evil"' not in result.document

    def test_runtime_stack(self, builtin_registry, azure_diagram):
        azure_diagram.get_node("app").properties.update({"runtime_stack": "python", "runtime_version": "3.12"})
        doc = DiagramCompiler(builtin_registry).compile(azure_diagram).document
        assert "    application_stack {" in doc
        assert _attr(doc, "python_version", '"3.12"')

    def test_unsupported_runtime_stack(self, builtin_registry, azure_diagram):
        hostile = 'python_version = "3.12"\n}\nresource "evil" "x" {\n  a'
        azure_diagram.get_node("app").properties.update({"runtime_stack": hostile, "runtime_version": "3.12"})
        result = DiagramCompiler(builtin_registry).compile(azure_diagram)
        assert [(f.code, f.node_id) for f in result.errors] == [("generator_failed", "app")]
        assert 'resource "evil"' not in result.document

    def test_hostile_subscription_id_stays_quoted(self, builtin_registry, azure_diagram):
        hostile = 'var.x\n}\nresource "null_resource" "x" {'
        azure_diagram.get_node("sub").properties["subscription_id"] = hostile
        result = DiagramCompiler(builtin_registry).compile(azure_diagram)
        assert result.ok
        assert 'resource "null_resource"' not in result.document
        assert 'subscription_id = "var.x\\n}\\nresource \\"null_resource\\" \\"x\\" {"' in result.files["providers.tf"]

    def test_location_as_variable(self, builtin_registry, azure_diagram):
        azure_diagram.get_node("rg").variable_overrides = {"location": "variable"}
        result = DiagramCompiler(builtin_registry).compile(azure_diagram)
        assert result.ok
        assert _attr(result.files["main.tf"], "location", "var.web_location")
        assert _attr(result.files["main.tf"], "location", "azurerm_resource_group.web.location")
        assert _attr(result.files["variables.tf"], "default", '"westeurope"')

    def test_unconnected_app_service(self, builtin_registry):
        diagram = Diagram(nodes=[ResourceInstance(id="app", type_id="azurerm/compute/app_service", name="lonely")])
        result = DiagramCompiler(builtin_registry).compile(diagram)
        codes = [f.code for f in result.findings]
        assert codes.count("missing_required_property") == 2
        assert codes[-1] == "generator_failed"


def _aws_diagram() -> Diagram:
    return Diagram(
        name="AWS Web",
        nodes=[
            ResourceInstance(id="vpc", type_id="aws/networking/vpc", name="main"),
            ResourceInstance(id="subnet", type_id="aws/networking/subnet", name="public"),
            ResourceInstance(
                id="sg",
                type_id="aws/networking/security_group",
                name="web",
                properties={"ingress": [{"port": 443}]},
            ),
            ResourceInstance(
                id="vm",
                type_id="aws/compute/instance",
                name="api",
                properties={"ami": "ami-0123456789", "_cost_monthly": 30},
            ),
        ],
        edges=[
            Connection(source="vpc", source_handle="subnets-out", target="subnet", target_handle="vpc-in"),
            Connection(source="vpc", source_handle="sg-out", target="sg", target_handle="vpc-in"),
            Connection(source="subnet", source_handle="instances-out", target="vm", target_handle="subnet-in"),
            Connection(source="vm", source_handle="sg-out", target="sg", target_handle="attach-in"),
        ],
        project=ProjectConfig(provider_configs={"aws": {"region": "eu-west-1"}}),
    )


class TestAws:
    def test_compiles_cleanly(self, builtin_registry):
        result = DiagramCompiler(builtin_registry).compile(_aws_diagram())
        assert result.findings == []
        assert 'provider "aws" {\n  region = "eu-west-1"\n}\n' == result.files["providers.tf"]

    def test_target_side_references(self, builtin_registry):
        doc = DiagramCompiler(builtin_registry).compile(_aws_diagram()).document
        assert _attr(doc, "vpc_id", "aws_vpc.main.id")
        assert _attr(doc, "subnet_id", "aws_subnet.public.id")

    def test_source_side_reference(self, builtin_registry):
        doc = DiagramCompiler(builtin_registry).compile(_aws_diagram()).document
        assert _attr(doc, "vpc_security_group_ids", "[aws_security_group.web.id]")

    def test_security_group_rules(self, builtin_registry):
        doc = DiagramCompiler(builtin_registry).compile(_aws_diagram()).document
        assert "  ingress {" in doc
        assert _attr(doc, "from_port", "443")
        assert "  egress {" in doc
        assert _attr(doc, "protocol", '"-1"')

    def test_name_tag_and_cost_keys(self, builtin_registry):
        doc = DiagramCompiler(builtin_registry).compile(_aws_diagram()).document
        assert _attr(doc, "Name", '"api"')
        assert "_cost_" not in doc

    def test_only_aws_provider_declared(self, builtin_registry):
        result = DiagramCompiler(builtin_registry).compile(_aws_diagram())
        assert "azurerm" not in result.document
        assert 'source  = "hashicorp/aws"' in result.files["terraform.tf"]

    def test_common_tags_merged_under_name(self, builtin_registry):
        diagram = _aws_diagram()
        diagram.project.common_tags = {"owner": "platform"}
        result = DiagramCompiler(builtin_registry).compile(diagram)
        doc = result.files["main.tf"]
        assert _attr(doc, "tags", "merge(local.common_tags, {")
        assert '    Name = "api"\n  })' in doc
        assert "common_tags" in result.files["locals.tf"]

    def test_instance_type_as_variable(self, builtin_registry):
        diagram = _aws_diagram()
        diagram.get_node("vm").variable_overrides = {"instance_type": "variable"}
        diagram.project.variable_values = {"api_instance_type": "t3.large"}
        result = DiagramCompiler(builtin_registry).compile(diagram)
        assert result.ok
        assert _attr(result.files["main.tf"], "instance_type", "var.api_instance_type")
        assert 'variable "api_instance_type"' in result.files["variables.tf"]
        assert result.files["terraform.tfvars"] == 'api_instance_type = "t3.large"\n'
