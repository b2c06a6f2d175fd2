"""Provider registry with lazy loading of the built-in adapters."""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING, Any, Type

from rtmx.providers.base import Provider

if TYPE_CHECKING:
    from rtmx.config import AdaptersConfig

logger = logging.getLogger(__name__)

TRACKER = "tracker"

# (category, type_name) -> dotted class path.  Built-ins are imported on
# first use only.
_BUILTIN_PROVIDERS: dict[tuple[str, str], str] = {
    (TRACKER, "github"): "rtmx.providers.tracker.github.GitHubAdapter",
    (TRACKER, "jira"): "rtmx.providers.tracker.jira.JiraAdapter",
}


def _import_class(dotted_path: str) -> Type[Provider]:
    """Import a class from a dotted module path like 'pkg.mod.Class'."""
    module_path, _, class_name = dotted_path.rpartition(".")
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


class ProviderRegistry:
    """Maps (category, type_name) pairs to provider classes.

    Usage::

        registry = ProviderRegistry()
        registry.register("tracker", "gitlab", GitLabAdapter)
        adapter = await registry.create_tracker("github", config.rtmx.adapters)
    """

    def __init__(self) -> None:
        self._providers: dict[tuple[str, str], Type[Provider] | str] = dict(_BUILTIN_PROVIDERS)

    def register(self, category: str, type_name: str, provider_class: Type[Provider]) -> None:
        """Register *provider_class*, replacing any existing entry for the key."""
        key = (category, type_name)
        if key in self._providers:
            logger.info(
                "Overriding provider %s/%s with %s", category, type_name, provider_class.__name__
            )
        self._providers[key] = provider_class

    def resolve(self, category: str, type_name: str) -> Type[Provider]:
        """Return the class for a key, importing a built-in on first use.

        Raises ``KeyError`` naming the available types when nothing is
        registered.
        """
        key = (category, type_name)
        entry = self._providers.get(key)
        if entry is None:
            available = [f"{c}/{t}" for c, t in sorted(self._providers) if c == category]
            raise KeyError(
                f"No provider registered for {category}/{type_name}. "
                f"Available: {available or 'none'}"
            )
        if isinstance(entry, str):
            entry = _import_class(entry)
            self._providers[key] = entry
        return entry

    async def create(
        self,
        category: str,
        type_name: str,
        config: Any = None,
        **kwargs: Any,
    ) -> Provider:
        """Instantiate, initialize, and return a provider.

        Extra keyword arguments (an HTTP client, an environment lookup)
        are passed to the constructor.
        """
        cls = self.resolve(category, type_name)
        instance = cls(config if config is not None else {}, **kwargs)
        await instance.initialize()
        return instance

    async def create_tracker(
        self, service: str, adapters: AdaptersConfig, **kwargs: Any
    ) -> Provider:
        """Build the tracker adapter for *service* from its config block."""
        return await self.create(TRACKER, service, getattr(adapters, service, None), **kwargs)

    def list_providers(self, category: str | None = None) -> list[tuple[str, str]]:
        """Registered (category, type_name) pairs, sorted."""
        keys = sorted(self._providers)
        if category is not None:
            keys = [(c, t) for c, t in keys if c == category]
        return keys
