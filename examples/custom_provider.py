"""Register a custom provider plugin example.

A plugin bundles resource types, connection rules and a provider config. Ship
it as a ``canvasform.providers`` entry point to have it picked up by
``default_registry()``, or build a registry by hand as below.
"""

from canvasform import Connection, ConnectionRule, Diagram, ReferenceDirective, ResourceInstance
from canvasform.compiler import DiagramCompiler, require_property
from canvasform.hcl import HclBlock
from canvasform.providers import ProviderConfig
from canvasform.registry import ProviderPlugin, ResourceSchema, ResourceType, build_registry, builtin_plugins


def generate_project(instance, ctx):
    return [HclBlock(block_type="resource", labels=["google_project", ctx.label], body={"name": ctx.name})]


def generate_bucket(instance, ctx):
    body = {
        "name": ctx.name,
        "project": require_property(instance, "project"),
        "location": instance.properties.get("location", "EU"),
    }
    return [HclBlock(block_type="resource", labels=["google_storage_bucket", ctx.label], body=body)]


plugin = ProviderPlugin(
    id="google",
    name="Google Cloud",
    resource_types=(
        ResourceType(
            schema=ResourceSchema(
                type_id="google/core/project",
                provider="google",
                display_name="Project",
                category="core",
                terraform_type="google_project",
            ),
            generate=generate_project,
        ),
        ResourceType(
            schema=ResourceSchema(
                type_id="google/storage/bucket",
                provider="google",
                display_name="Storage Bucket",
                category="storage",
                terraform_type="google_storage_bucket",
            ),
            generate=generate_bucket,
        ),
    ),
    connection_rules=(
        ConnectionRule(
            source_type="google/core/project",
            source_handle="out",
            target_type="google/storage/bucket",
            target_handle="project-in",
            creates_reference=ReferenceDirective(side="target", property_key="project", attribute="project_id"),
        ),
    ),
    provider_config=ProviderConfig(
        id="google",
        display_name="Google Cloud",
        source="hashicorp/google",
        version="~> 6.0",
        default_config={"region": "europe-west1"},
    ),
)

registry = build_registry([*builtin_plugins(), plugin])

diagram = Diagram(
    name="Buckets",
    nodes=[
        ResourceInstance(id="proj", type_id="google/core/project", name="analytics"),
        ResourceInstance(id="raw", type_id="google/storage/bucket", name="raw-events"),
    ],
    edges=[Connection(source="proj", source_handle="out", target="raw", target_handle="project-in")],
)

print(DiagramCompiler(registry).compile(diagram).document)
