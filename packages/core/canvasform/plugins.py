"""Plugin discovery: extends canvasform with provider plugins via entry points."""

from __future__ import annotations

import logging
from importlib.metadata import entry_points
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from canvasform.registry import ProviderPlugin

logger = logging.getLogger(__name__)

PROVIDER_GROUP = "canvasform.providers"


def discover_providers() -> dict[str, ProviderPlugin]:
    """Discover installed provider plugins.

    Each entry point must resolve to a ``ProviderPlugin``. Returns ``{name: plugin}``
    in entry-point order; plugins that fail to load are logged and skipped.
    """
    from canvasform.registry import ProviderPlugin

    result: dict[str, ProviderPlugin] = {}
    try:
        eps = entry_points(group=PROVIDER_GROUP)
    except Exception as exc:
        logger.warning("Failed to scan entry point group %s: %s", PROVIDER_GROUP, exc)
        return result

    for ep in eps:
        try:
            loaded = ep.load()
        except Exception as exc:
            logger.warning("Failed to load provider plugin %s: %s", ep.name, exc)
            continue
        if not isinstance(loaded, ProviderPlugin):
            logger.warning("Entry point %s is not a ProviderPlugin (got %s)", ep.name, type(loaded).__name__)
            continue
        result[ep.name] = loaded
        logger.debug("Loaded provider plugin %s from group %s", ep.name, PROVIDER_GROUP)

    return result


def list_plugins() -> list[str]:
    """Names of installed provider plugins."""
    return list(discover_providers())
