"""Naming convention expansion.

Templates such as ``{org}-{type}-{env}-{name}`` are expanded in a single pass:
``{name}`` comes from the resource, every other known token from the project's
convention. Tokens with no value, and tokens this module does not know, are
left in the output literally.
"""

from __future__ import annotations

import re

from canvasform.diagram import NamingConstraints, NamingConvention

_TOKEN = re.compile(r"\{([a-zA-Z_][a-zA-Z0-9_]*)\}")
_PROJECT_TOKENS = ("env", "region", "org")


def resolve_name(convention: NamingConvention | None, local_name: str) -> str:
    if convention is None or not convention.enabled:
        return local_name

    def _sub(m: re.Match[str]) -> str:
        token = m.group(1)
        if token == "name":
            return local_name
        if token in _PROJECT_TOKENS:
            value = getattr(convention, token)
            if value:
                return value
        return m.group(0)

    # re.sub never rescans replacement text, so braces inside a resource name stay inert
    return _TOKEN.sub(_sub, convention.template)


def apply_constraints(name: str, constraints: NamingConstraints | None) -> str:
    if constraints is None:
        return name
    if constraints.lowercase:
        name = name.lower()
    if constraints.no_hyphens:
        name = name.replace("-", "")
    if constraints.max_length and len(name) > constraints.max_length:
        name = name[: constraints.max_length]
    return name


def sanitize_terraform_name(name: str) -> str:
    """Turn a resource name into a Terraform block label."""
    label = re.sub(r"[^a-zA-Z0-9_]", "_", name).lower()
    label = re.sub(r"^[0-9_]+", "", label)
    return label or "resource"
