"""Diagram: the snapshot format the compiler consumes.

A diagram is a list of resource nodes, the edges drawn between their handles,
and the project settings active when it was captured. The canvas produces it,
the remote snapshot collaborator serves it as JSON, and the compiler turns it
into Terraform configuration.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator

_ID_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_.-]*$")
_TYPE_ID_PATTERN = re.compile(r"^[^/\s]+/[^/\s]+/[^/\s]+$")
_SETTING_KEY = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_-]*$")


class Reference(BaseModel):
    """A cross-resource reference such as ``azurerm_subnet.app.id``.

    Rendered unquoted. Never escaped, since it is an expression and not a string.
    """

    address: str
    attribute: str = "id"

    def with_attribute(self, attribute: str) -> Reference:
        return Reference(address=self.address, attribute=attribute)

    @property
    def expression(self) -> str:
        return f"{self.address}.{self.attribute}"

    def __str__(self) -> str:
        return self.expression


class Expression(BaseModel):
    """A raw HCL expression (``var.x``, ``local.common_tags``) emitted verbatim."""

    text: str

    def __str__(self) -> str:
        return self.text


class ResourceInstance(BaseModel):
    id: str
    type_id: str
    name: str = ""
    properties: dict[str, Any] = Field(default_factory=dict)
    # property key -> "variable" to emit var.<label>_<key> instead of the literal value
    variable_overrides: dict[str, Literal["literal", "variable"]] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not _ID_PATTERN.match(v):
            raise ValueError(f"Node id {v!r} must match [a-zA-Z_][a-zA-Z0-9_.-]*")
        return v

    @field_validator("type_id")
    @classmethod
    def validate_type_id(cls, v: str) -> str:
        if not _TYPE_ID_PATTERN.match(v):
            raise ValueError(f"Resource type {v!r} must look like <provider>/<category>/<kind>")
        return v

    @property
    def local_name(self) -> str:
        return self.name or self.id


class Connection(BaseModel):
    """An edge drawn between two nodes' handles."""

    id: str | None = None
    source: str
    source_handle: str
    target: str
    target_handle: str

    @property
    def edge_id(self) -> str:
        if self.id:
            return self.id
        return f"{self.source}:{self.source_handle}->{self.target}:{self.target_handle}"


class OutputBinding(BaseModel):
    """Feeds an attribute of one resource into another through a binding generator."""

    source: str
    target: str
    source_attribute: str = "id"


class ReferenceDirective(BaseModel):
    side: Literal["source", "target"]
    property_key: str
    attribute: str = "id"


class ConnectionRule(BaseModel):
    source_type: str
    source_handle: str
    target_type: str
    target_handle: str
    creates_reference: ReferenceDirective | None = None
    label: str = ""

    model_config = {"frozen": True}

    @property
    def key(self) -> tuple[str, str, str, str]:
        return (self.source_type, self.source_handle, self.target_type, self.target_handle)


class PropertyValidation(BaseModel):
    min_length: int | None = None
    max_length: int | None = None
    min: float | None = None
    max: float | None = None
    pattern: str | None = None
    pattern_message: str = ""
    custom_validator: str | None = None


class PropertySchema(BaseModel):
    key: str
    label: str = ""
    type: str = "string"  # string, number, boolean, select, cidr, tags, array, reference
    description: str = ""
    required: bool = False
    default: Any = None
    validation: PropertyValidation | None = None


class NamingConvention(BaseModel):
    enabled: bool = False
    template: str = "{name}"
    env: str = ""
    region: str | None = None
    org: str | None = None


class NamingConstraints(BaseModel):
    lowercase: bool = False
    no_hyphens: bool = False
    max_length: int | None = None


class Backend(BaseModel):
    type: str
    config: dict[str, str] = Field(default_factory=dict)

    @field_validator("config")
    @classmethod
    def validate_config(cls, v: dict[str, str]) -> dict[str, str]:
        _check_setting_keys(v, "backend setting")
        return v


class ProjectConfig(BaseModel):
    naming: NamingConvention | None = None
    provider_configs: dict[str, dict[str, Any]] = Field(default_factory=dict)
    common_tags: dict[str, str] = Field(default_factory=dict)
    variable_values: dict[str, str] = Field(default_factory=dict)
    terraform_version: str = ">= 1.0"
    backend: Backend | None = None

    @field_validator("provider_configs")
    @classmethod
    def validate_provider_configs(cls, v: dict[str, dict[str, Any]]) -> dict[str, dict[str, Any]]:
        for settings in v.values():
            _check_setting_keys(settings, "provider setting")
        return v


class Finding(BaseModel):
    code: str
    severity: Literal["error", "warning"]
    message: str
    node_id: str | None = None
    edge_id: str | None = None


class CompileResult(BaseModel):
    document: str
    files: dict[str, str] = Field(default_factory=dict)
    findings: list[Finding] = Field(default_factory=list)

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == "error"]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == "warning"]

    @property
    def ok(self) -> bool:
        return not self.errors


class Diagram(BaseModel):
    """A point-in-time snapshot of the canvas. Read-only to the compiler."""

    name: str = "untitled"
    nodes: list[ResourceInstance] = Field(default_factory=list)
    edges: list[Connection] = Field(default_factory=list)
    bindings: list[OutputBinding] = Field(default_factory=list)
    project: ProjectConfig = Field(default_factory=ProjectConfig)

    def get_node(self, node_id: str) -> ResourceInstance | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_yaml(self) -> str:
        data = self.model_dump(exclude_none=True)
        # Remove empty lists and dicts for cleaner output
        data = _clean_empty(data)
        return yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(indent=indent, exclude_none=True)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> Diagram:
        data = yaml.safe_load(yaml_str)
        return cls.model_validate(data or {})

    @classmethod
    def from_file(cls, path: str | Path) -> Diagram:
        p = Path(path)
        text = p.read_text()
        if p.suffix in (".yaml", ".yml"):
            return cls.from_yaml(text)
        return cls.model_validate_json(text)

    @classmethod
    def json_schema(cls) -> dict:
        return cls.model_json_schema()


def _clean_empty(d: Any) -> Any:
    if isinstance(d, dict):
        return {k: _clean_empty(v) for k, v in d.items() if v not in ([], {}, None, "")}
    if isinstance(d, list):
        return [_clean_empty(i) for i in d]
    return d


def _check_setting_keys(settings: dict[str, Any], what: str) -> None:
    for key in settings:
        if not _SETTING_KEY.match(key):
            raise ValueError(f"{what} {key!r} must match [a-zA-Z_][a-zA-Z0-9_-]*")
