"""Terraform variables and outputs registered by generators.

Generators hand :class:`Variable` and :class:`Output` values to their
generation context. The compiler keeps those of generators that succeed and
feeds them into the collectors here, which keep the first registration for a
name and drop later ones.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, field_validator

from canvasform.diagram import Expression
from canvasform.escape import hcl_quote
from canvasform.hcl import HclBlock

logger = logging.getLogger(__name__)

_NAME = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_-]*$")
_TYPE = re.compile(r"^(string|number|bool|any|(list|set|map)\((string|number|bool|any)\))$")


def _check_name(v: str) -> str:
    if not _NAME.match(v):
        raise ValueError(f"{v!r} is not a valid Terraform name")
    return v


class Variable(BaseModel):
    name: str
    type: str = "string"
    description: str = ""
    default: Any = None
    sensitive: bool = False

    model_config = {"frozen": True}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        if not _TYPE.match(v):
            raise ValueError(f"Unsupported variable type {v!r}")
        return v

    def to_block(self) -> HclBlock:
        body: dict[str, Any] = {"type": Expression(text=self.type)}
        if self.description:
            body["description"] = self.description
        if self.default is not None:
            body["default"] = self.default
        if self.sensitive:
            body["sensitive"] = True
        return HclBlock(block_type="variable", labels=[self.name], body=body)


class Output(BaseModel):
    name: str
    value: Any
    description: str = ""
    sensitive: bool = False

    model_config = {"frozen": True}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    def to_block(self) -> HclBlock:
        body: dict[str, Any] = {"value": self.value}
        if self.description:
            body["description"] = self.description
        if self.sensitive:
            body["sensitive"] = True
        return HclBlock(block_type="output", labels=[self.name], body=body)


def variable_type_for(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (list, tuple)):
        return "list(string)"
    if isinstance(value, dict):
        return "map(string)"
    return "string"


class VariableCollector:
    def __init__(self):
        self._variables: dict[str, Variable] = {}

    def add(self, variable: Variable) -> bool:
        """Register ``variable``; returns False when the name is already taken."""
        if variable.name in self._variables:
            logger.debug("Variable %s already registered, keeping the first", variable.name)
            return False
        self._variables[variable.name] = variable
        return True

    def all(self) -> list[Variable]:
        return list(self._variables.values())

    def blocks(self) -> list[HclBlock]:
        return [v.to_block() for v in self._variables.values()]


class OutputCollector:
    def __init__(self):
        self._outputs: dict[str, Output] = {}

    def add(self, output: Output) -> bool:
        if output.name in self._outputs:
            logger.debug("Output %s already registered, keeping the first", output.name)
            return False
        self._outputs[output.name] = output
        return True

    def all(self) -> list[Output]:
        return list(self._outputs.values())

    def blocks(self) -> list[HclBlock]:
        return [o.to_block() for o in self._outputs.values()]


def render_tfvars(variables: list[Variable], values: Mapping[str, str]) -> str:
    """``terraform.tfvars`` lines for collected variables that have a project value."""
    lines = []
    for variable in variables:
        value = values.get(variable.name)
        if value not in (None, ""):
            lines.append(f"{variable.name} = {hcl_quote(value)}")
    return "\n".join(lines) + "\n" if lines else ""
