"""HCL block model and serializer.

Generators return :class:`HclBlock` values holding raw semantic values. This
module is the only place that turns them into text, so it is the only place
string literals are quoted and escaped.
"""

from __future__ import annotations

import math
import re
from typing import Any

from pydantic import BaseModel, Field

from canvasform.diagram import Expression, Reference
from canvasform.escape import hcl_quote

_BARE_KEY = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_-]*$")


class HclBlock(BaseModel):
    """One unit of emitted configuration: ``block_type "label" ... { body }``."""

    block_type: str
    labels: list[str] = Field(default_factory=list)
    body: dict[str, Any] = Field(default_factory=dict)

    @property
    def address(self) -> str | None:
        """``<type>.<name>`` for resource blocks, ``data.<type>.<name>`` for data sources."""
        if self.block_type == "resource" and len(self.labels) == 2:
            return ".".join(self.labels)
        if self.block_type == "data" and len(self.labels) == 2:
            return "data." + ".".join(self.labels)
        return None


def _is_block(value: Any) -> bool:
    return isinstance(value, HclBlock) or (
        isinstance(value, list) and bool(value) and all(isinstance(v, HclBlock) for v in value)
    )


def render_value(value: Any, indent: int = 0) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"{value!r} has no HCL representation")
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return hcl_quote(value)
    if isinstance(value, (Reference, Expression)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(render_value(v, indent) for v in value) + "]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        pad = "  " * (indent + 1)
        width = max(len(_render_key(k)) for k in value)
        lines = ["{"]
        for k, v in value.items():
            lines.append(f"{pad}{_render_key(k).ljust(width)} = {render_value(v, indent + 1)}")
        lines.append("  " * indent + "}")
        return "\n".join(lines)
    raise TypeError(f"Cannot render {type(value).__name__} as an HCL value")


def _render_key(key: str) -> str:
    return key if _BARE_KEY.match(key) else hcl_quote(key)


def is_identifier(name: Any) -> bool:
    return isinstance(name, str) and _BARE_KEY.match(name) is not None


def _identifier(name: str) -> str:
    if not is_identifier(name):
        raise ValueError(f"{name!r} is not a valid HCL identifier")
    return name


def _header(block: HclBlock) -> str:
    parts = [_identifier(block.block_type)] + [hcl_quote(label) for label in block.labels]
    return " ".join(parts)


def _render_body(body: dict[str, Any], indent: int) -> list[str]:
    pad = "  " * indent
    attrs = [(k, v) for k, v in body.items() if not _is_block(v)]
    nested = [(k, v) for k, v in body.items() if _is_block(v)]
    lines: list[str] = []

    if attrs:
        width = max(len(_identifier(k)) for k, _ in attrs)
        for k, v in attrs:
            lines.append(f"{pad}{k.ljust(width)} = {render_value(v, indent)}")

    for key, value in nested:
        blocks = value if isinstance(value, list) else [value]
        for sub in blocks:
            if lines:
                lines.append("")
            header = " ".join([_identifier(key)] + [hcl_quote(label) for label in sub.labels])
            if not sub.body:
                lines.append(f"{pad}{header} {{}}")
                continue
            lines.append(f"{pad}{header} {{")
            lines.extend(_render_body(sub.body, indent + 1))
            lines.append(f"{pad}}}")
    return lines


def render_block(block: HclBlock) -> str:
    if not block.body:
        return f"{_header(block)} {{}}"
    lines = [f"{_header(block)} {{"]
    lines.extend(_render_body(block.body, 1))
    lines.append("}")
    return "\n".join(lines)


def render_blocks(blocks: list[HclBlock]) -> str:
    return "\n\n".join(render_block(b) for b in blocks)
