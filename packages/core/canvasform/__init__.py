"""canvasform - compile infrastructure diagrams into Terraform configuration."""

from canvasform.diagram import (
    Backend,
    CompileResult,
    Connection,
    ConnectionRule,
    Diagram,
    Expression,
    Finding,
    NamingConstraints,
    NamingConvention,
    OutputBinding,
    ProjectConfig,
    PropertySchema,
    PropertyValidation,
    Reference,
    ReferenceDirective,
    ResourceInstance,
)

__version__ = "0.1.0"

__all__ = [
    "Backend",
    "compile_diagram",
    "CompileResult",
    "Connection",
    "ConnectionRule",
    "default_registry",
    "Diagram",
    "DiagramCompiler",
    "escape_hcl_string",
    "Expression",
    "Finding",
    "NamingConstraints",
    "NamingConvention",
    "OutputBinding",
    "ProjectConfig",
    "PropertySchema",
    "PropertyValidation",
    "Reference",
    "ReferenceDirective",
    "ResourceInstance",
    "TypeRegistry",
]


def __getattr__(name: str):
    # Lazy imports so loading the data model does not pull in every plugin
    if name == "DiagramCompiler":
        from canvasform.compiler import DiagramCompiler

        return DiagramCompiler
    if name == "compile_diagram":
        from canvasform.compiler import compile_diagram

        return compile_diagram
    if name == "TypeRegistry":
        from canvasform.registry import TypeRegistry

        return TypeRegistry
    if name == "default_registry":
        from canvasform.registry import default_registry

        return default_registry
    if name == "escape_hcl_string":
        from canvasform.escape import escape_hcl_string

        return escape_hcl_string
    raise AttributeError(f"module 'canvasform' has no attribute {name!r}")
