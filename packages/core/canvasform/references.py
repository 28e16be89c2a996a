"""Reference injection.

A connection rule may declare that the edge it governs implies a property
reference: drawing an app service plan onto a web app sets the app's
``service_plan_id``. The injector writes that reference onto a working copy of
the resource named by the rule's ``side``.

Connections are authoritative. An injected reference replaces whatever value
the user typed into the same property.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from canvasform.diagram import ConnectionRule, Reference, ResourceInstance

logger = logging.getLogger(__name__)


class UnresolvableReference(LookupError):
    """The resource a reference should point at emits no block and is not virtual."""


def reference_value(
    other: ResourceInstance,
    attribute: str,
    addresses: Mapping[str, str],
    virtual_names: Mapping[str, str],
):
    """Value pointing at ``other``.

    A resource that emits a block is referenced by address (``type.label.attr``).
    A virtual resource has no address, so its resolved name is used as a plain string.
    """
    address = addresses.get(other.id)
    if address is not None:
        return Reference(address=address, attribute=attribute)
    if other.id in virtual_names:
        return virtual_names[other.id]
    raise UnresolvableReference(f"{other.id!r} ({other.type_id}) emits no block to reference")


def apply(
    rule: ConnectionRule,
    source: ResourceInstance,
    target: ResourceInstance,
    addresses: Mapping[str, str],
    virtual_names: Mapping[str, str],
) -> ResourceInstance | None:
    """Write the rule's reference onto ``source`` or ``target`` in place.

    Both instances must be working copies owned by the current compilation.
    Returns the updated instance, or None when the rule creates no reference.
    Raises :class:`UnresolvableReference` and leaves both untouched when the
    other end has neither an address nor a virtual name.
    """
    directive = rule.creates_reference
    if directive is None:
        return None

    if directive.side == "source":
        holder, other = source, target
    else:
        holder, other = target, source

    value = reference_value(other, directive.attribute, addresses, virtual_names)
    previous = holder.properties.get(directive.property_key)
    if previous is not None and previous != value:
        logger.debug(
            "Connection overrides %s.%s (was %r)",
            holder.id,
            directive.property_key,
            previous,
        )
    holder.properties[directive.property_key] = value
    return holder
