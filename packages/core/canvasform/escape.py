"""String escaping for HCL double-quoted literals."""

from __future__ import annotations

import re

# Order matters: the backslash goes first so later steps are not re-escaped.
_REPLACEMENTS: tuple[tuple[str, str], ...] = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
    ("${", "$${"),
)

_UNESCAPES = {"\\": "\\", '"': '"', "n": "\n", "r": "\r", "t": "\t"}
_ESCAPED_TOKEN = re.compile(r"\\(.)|\$\$\{", re.DOTALL)


def escape_hcl_string(value: str) -> str:
    """Escape a value for embedding inside an HCL ``"..."`` literal.

    Doubling the dollar of ``${`` stops Terraform from treating user text as an
    interpolation. Lone ``$`` and ``{`` characters are left alone.
    """
    for old, new in _REPLACEMENTS:
        value = value.replace(old, new)
    return value


def hcl_quote(value: str) -> str:
    return f'"{escape_hcl_string(value)}"'


def unescape_hcl_string(text: str) -> str:
    """Inverse of :func:`escape_hcl_string`."""

    def _sub(m: re.Match[str]) -> str:
        if m.group(1) is None:
            return "${"
        ch = m.group(1)
        if ch not in _UNESCAPES:
            raise ValueError(f"Unknown escape sequence \\{ch} in {text!r}")
        return _UNESCAPES[ch]

    return _ESCAPED_TOKEN.sub(_sub, text)
