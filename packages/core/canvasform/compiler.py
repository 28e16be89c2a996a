"""Diagram compiler: turns a diagram snapshot into Terraform configuration.

The compiler is a pure batch transform over (snapshot, registry). Every
mutation (schema defaults, injected references) happens on per-call working
copies, so compiling the same snapshot twice gives byte-identical output and
the same findings.

Problems with individual resources or edges become findings and never stop
the rest of the diagram from compiling. Only a structurally inconsistent
snapshot aborts the call.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from canvasform import references
from canvasform.connections import describe, resolve
from canvasform.diagram import (
    CompileResult,
    Diagram,
    Expression,
    Finding,
    NamingConvention,
    Reference,
    ResourceInstance,
)
from canvasform.hcl import HclBlock, render_block
from canvasform.naming import apply_constraints, resolve_name, sanitize_terraform_name
from canvasform.providers import ProviderBlockBuilder, terraform_block
from canvasform.registry import TypeRegistry
from canvasform.variables import (
    Output,
    OutputCollector,
    Variable,
    VariableCollector,
    render_tfvars,
    variable_type_for,
)

logger = logging.getLogger(__name__)

_COST_PREFIX = "_cost_"

# Output file for each block type; anything else lands in main.tf
_FILE_FOR_BLOCK = {
    "locals": "locals.tf",
    "variable": "variables.tf",
    "output": "outputs.tf",
}
_FILE_ORDER = ("terraform.tf", "providers.tf", "locals.tf", "main.tf", "variables.tf", "outputs.tf")


class SnapshotError(ValueError):
    """The snapshot handed to the compiler is internally inconsistent."""


class GeneratorError(Exception):
    """A generator cannot produce blocks for a structurally invalid instance."""


def require_property(instance: ResourceInstance, key: str) -> Any:
    value = instance.properties.get(key)
    if value is None or value == "":
        raise GeneratorError(f"{instance.id} ({instance.type_id}) is missing required property {key!r}")
    return value


class GenerationContext:
    """View handed to a generator for one resource.

    Lookups are read-only. Variables and outputs a generator registers are
    buffered here and only reach the document when the generator succeeds.
    """

    def __init__(
        self,
        instance_id: str,
        name: str,
        label: str,
        naming: NamingConvention | None,
        resources: Mapping[str, ResourceInstance],
        addresses: Mapping[str, str],
        provider_configs: Mapping[str, Mapping[str, Any]],
        common_tags: bool = False,
        variable_overrides: Mapping[str, str] | None = None,
    ):
        self.instance_id = instance_id
        self.name = name
        self.label = label
        self.naming = naming
        self._resources = resources
        self._addresses = addresses
        self._provider_configs = provider_configs
        self._common_tags = common_tags
        self._overrides = dict(variable_overrides or {})
        self.variables: list[Variable] = []
        self.outputs: list[Output] = []

    def get_resource(self, instance_id: str) -> ResourceInstance | None:
        resource = self._resources.get(instance_id)
        return resource.model_copy(deep=True) if resource is not None else None

    def address_of(self, instance_id: str) -> str | None:
        return self._addresses.get(instance_id)

    def reference(self, instance_id: str, attribute: str = "id") -> Reference:
        address = self._addresses.get(instance_id)
        if address is None:
            raise GeneratorError(f"Cannot reference {instance_id!r}: it emits no addressable block")
        return Reference(address=address, attribute=attribute)

    def provider_config(self, provider_id: str) -> dict[str, Any]:
        return dict(self._provider_configs.get(provider_id, {}))

    @property
    def common_tags(self) -> Expression | None:
        """``local.common_tags`` when the project defines common tags."""
        return Expression(text="local.common_tags") if self._common_tags else None

    def add_variable(self, variable: Variable) -> Expression:
        self.variables.append(variable)
        return Expression(text=f"var.{variable.name}")

    def add_output(self, output: Output) -> None:
        self.outputs.append(output)

    def property_value(self, key: str, value: Any, description: str = "") -> Any:
        """``value`` itself, or ``var.<label>_<key>`` when the node marks ``key`` as a variable.

        The variable defaults to ``value``. References and expressions are never lifted.
        """
        if self._overrides.get(key) != "variable" or value is None or isinstance(value, (Reference, Expression)):
            return value
        variable = Variable(
            name=f"{self.label}_{key}",
            type=variable_type_for(value),
            description=description,
            default=value,
        )
        return self.add_variable(variable)


class DiagramCompiler:
    def __init__(self, registry: TypeRegistry):
        self._registry = registry

    def compile(self, diagram: Diagram) -> CompileResult:
        _check_snapshot(diagram)
        project = diagram.project
        findings: list[Finding] = []

        working = self._working_copies(diagram)
        names, labels, addresses, skipped = self._resolve_names(working, project.naming, findings)
        virtual_names = {node_id: names[node_id] for node_id in working if self._is_virtual(working[node_id])}

        for edge in diagram.edges:
            self._connect(edge, working, addresses, virtual_names, findings)

        self._check_required(working, findings)

        providers = ProviderBlockBuilder(self._registry).build(list(working.values()), project.provider_configs)
        findings.extend(providers.findings)

        variables = VariableCollector()
        outputs = OutputCollector()

        def context_for(instance: ResourceInstance) -> GenerationContext:
            return GenerationContext(
                instance_id=instance.id,
                name=names[instance.id],
                label=labels[instance.id],
                naming=project.naming,
                resources=working,
                addresses=addresses,
                provider_configs=project.provider_configs,
                common_tags=bool(project.common_tags),
                variable_overrides=instance.variable_overrides,
            )

        generated: list[HclBlock] = []
        for instance in working.values():
            if instance.id in skipped:
                continue
            resource_type = self._registry.resolve(instance.type_id)
            if resource_type is None:
                findings.append(
                    Finding(
                        code="unknown_type",
                        severity="error",
                        message=f"Unknown resource type: {instance.type_id}",
                        node_id=instance.id,
                    )
                )
                skipped.add(instance.id)
                continue
            context = context_for(instance)
            blocks = _run_generator(
                lambda: resource_type.generate(instance.model_copy(deep=True), context),
                instance,
                context,
                findings,
            )
            if blocks is None:
                skipped.add(instance.id)
                continue
            generated.extend(blocks)
            _commit(context, variables, outputs)

        for binding in diagram.bindings:
            generated.extend(self._bind(binding, working, skipped, context_for, variables, outputs, findings))

        header_blocks = [terraform_block(providers.required_providers, project.terraform_version, project.backend)]
        locals_blocks: list[HclBlock] = []
        if project.common_tags:
            locals_blocks.append(HclBlock(block_type="locals", body={"common_tags": dict(project.common_tags)}))

        generated.extend(variables.blocks())
        generated.extend(outputs.blocks())
        files = _assemble(header_blocks, providers.provider_blocks, locals_blocks, generated)
        document = "# Generated by canvasform\n\n" + "\n".join(files[f] for f in _FILE_ORDER if f in files)

        # tfvars is a separate file and never part of the single-document output
        tfvars = render_tfvars(variables.all(), project.variable_values)
        if tfvars:
            files["terraform.tfvars"] = tfvars

        logger.debug(
            "Compiled %s: %d nodes, %d edges, %d blocks, %d findings",
            diagram.name,
            len(diagram.nodes),
            len(diagram.edges),
            len(generated),
            len(findings),
        )
        return CompileResult(document=document, files=files, findings=findings)

    def _is_virtual(self, instance: ResourceInstance) -> bool:
        schema = self._registry.schema(instance.type_id)
        return schema is not None and schema.is_virtual

    def _working_copies(self, diagram: Diagram) -> dict[str, ResourceInstance]:
        working: dict[str, ResourceInstance] = {}
        for node in diagram.nodes:
            copy = node.model_copy(deep=True)
            # _cost_* keys are estimation hints, never Terraform attributes
            copy.properties = {k: v for k, v in copy.properties.items() if not k.startswith(_COST_PREFIX)}
            schema = self._registry.schema(copy.type_id)
            if schema is not None:
                for prop in schema.properties:
                    if prop.key not in copy.properties and prop.default is not None:
                        copy.properties[prop.key] = prop.default
            working[copy.id] = copy
        return working

    def _resolve_names(
        self,
        working: Mapping[str, ResourceInstance],
        naming: NamingConvention | None,
        findings: list[Finding],
    ) -> tuple[dict[str, str], dict[str, str], dict[str, str], set[str]]:
        names: dict[str, str] = {}
        labels: dict[str, str] = {}
        addresses: dict[str, str] = {}
        skipped: set[str] = set()
        owners: dict[str, str] = {}

        for instance in working.values():
            schema = self._registry.schema(instance.type_id)
            name = resolve_name(naming, instance.local_name)
            if schema is not None:
                name = apply_constraints(name, schema.naming_constraints)
            names[instance.id] = name
            labels[instance.id] = sanitize_terraform_name(name)

            if schema is None or schema.is_virtual:
                continue
            address = f"{schema.terraform_type}.{labels[instance.id]}"
            if address in owners:
                findings.append(
                    Finding(
                        code="duplicate_address",
                        severity="error",
                        message=f"{address} is already emitted by node {owners[address]!r}; rename one of them",
                        node_id=instance.id,
                    )
                )
                skipped.add(instance.id)
                continue
            owners[address] = instance.id
            addresses[instance.id] = address

        return names, labels, addresses, skipped

    def _connect(self, edge, working, addresses, virtual_names, findings: list[Finding]) -> None:
        source = working[edge.source]
        target = working[edge.target]
        match = resolve(self._registry.rules, source.type_id, edge.source_handle, target.type_id, edge.target_handle)
        described = describe(source.type_id, edge.source_handle, target.type_id, edge.target_handle)

        if not match.resolved:
            findings.append(
                Finding(
                    code="unresolved_connection",
                    severity="warning",
                    message=f"No connection rule allows {described}",
                    edge_id=edge.edge_id,
                )
            )
            return
        if match.ambiguous:
            findings.append(
                Finding(
                    code="ambiguous_rule",
                    severity="warning",
                    message=f"{match.candidates} connection rules match {described}; using the first registered",
                    edge_id=edge.edge_id,
                )
            )
        try:
            references.apply(match.rule, source, target, addresses, virtual_names)
        except references.UnresolvableReference as exc:
            findings.append(
                Finding(
                    code="unresolved_reference",
                    severity="warning",
                    message=f"{described}: {exc}; no reference injected",
                    edge_id=edge.edge_id,
                )
            )

    def _check_required(self, working: Mapping[str, ResourceInstance], findings: list[Finding]) -> None:
        for instance in working.values():
            schema = self._registry.schema(instance.type_id)
            if schema is None:
                continue
            for prop in schema.properties:
                if prop.required and instance.properties.get(prop.key) in (None, ""):
                    findings.append(
                        Finding(
                            code="missing_required_property",
                            severity="warning",
                            message=f"{instance.local_name}: {prop.label or prop.key} is required",
                            node_id=instance.id,
                        )
                    )

    def _bind(self, binding, working, skipped, context_for, variables, outputs, findings: list[Finding]) -> list[HclBlock]:
        if binding.source in skipped or binding.target in skipped:
            logger.debug("Skipping binding %s -> %s: an end was not generated", binding.source, binding.target)
            return []
        source = working[binding.source]
        target = working[binding.target]
        generator = self._registry.binding_generator(source.type_id, target.type_id)
        if generator is None:
            findings.append(
                Finding(
                    code="unresolved_binding",
                    severity="warning",
                    message=f"No binding generator feeds {source.type_id} into {target.type_id}",
                    node_id=target.id,
                )
            )
            return []
        context = context_for(target)
        blocks = _run_generator(
            lambda: generator.generate(
                source.model_copy(deep=True), target.model_copy(deep=True), context, binding.source_attribute
            ),
            target,
            context,
            findings,
        )
        if blocks is None:
            return []
        _commit(context, variables, outputs)
        return blocks


def _run_generator(
    call, instance: ResourceInstance, context: GenerationContext, findings: list[Finding]
) -> list[HclBlock] | None:
    """Blocks from ``call``, or None after recording ``generator_failed``."""
    try:
        blocks = list(call())
        # Render eagerly so an unrenderable value is charged to this resource
        for block in blocks:
            render_block(block)
        for registered in (*context.variables, *context.outputs):
            render_block(registered.to_block())
    except Exception as exc:
        logger.warning("Generator for %s (%s) failed: %s", instance.id, instance.type_id, exc)
        findings.append(
            Finding(
                code="generator_failed",
                severity="error",
                message=f"{instance.local_name}: {exc}",
                node_id=instance.id,
            )
        )
        return None
    return blocks


def _commit(context: GenerationContext, variables: VariableCollector, outputs: OutputCollector) -> None:
    for variable in context.variables:
        variables.add(variable)
    for output in context.outputs:
        outputs.add(output)


def _check_snapshot(diagram: Diagram) -> None:
    seen: set[str] = set()
    for node in diagram.nodes:
        if node.id in seen:
            raise SnapshotError(f"Duplicate node id {node.id!r} in diagram snapshot")
        seen.add(node.id)
    for edge in diagram.edges:
        for end in (edge.source, edge.target):
            if end not in seen:
                raise SnapshotError(f"Edge {edge.edge_id!r} references missing node {end!r}")
    for binding in diagram.bindings:
        for end in (binding.source, binding.target):
            if end not in seen:
                raise SnapshotError(f"Binding {binding.source!r} -> {binding.target!r} references missing node {end!r}")


def _assemble(
    header: list[HclBlock],
    provider_blocks: list[HclBlock],
    locals_blocks: list[HclBlock],
    generated: list[HclBlock],
) -> dict[str, str]:
    grouped: dict[str, list[HclBlock]] = {name: [] for name in _FILE_ORDER}
    grouped["terraform.tf"].extend(header)
    grouped["providers.tf"].extend(provider_blocks)
    grouped["locals.tf"].extend(locals_blocks)
    for block in generated:
        grouped[_FILE_FOR_BLOCK.get(block.block_type, "main.tf")].append(block)

    return {
        name: "\n\n".join(render_block(b) for b in blocks) + "\n"
        for name, blocks in grouped.items()
        if blocks
    }


def compile_diagram(diagram: Diagram, registry: TypeRegistry | None = None) -> CompileResult:
    """Compile with the given registry, or the default one of built-in and installed plugins."""
    if registry is None:
        from canvasform.registry import default_registry

        registry = default_registry()
    return DiagramCompiler(registry).compile(diagram)
