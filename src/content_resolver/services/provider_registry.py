"""Provider registry.

A plain name -> provider mapping, constructed at startup and passed to the
orchestrator. There is no module-level instance: tests build their own.
"""

from loguru import logger

from content_resolver.config import settings
from content_resolver.errors import UnknownProviderError
from content_resolver.protocols import EntityProvider


class ProviderRegistry:
    """Registry of EntityProvider implementations keyed by name.

    Example:
        ```python
        registry = ProviderRegistry(default="hipolabs")
        registry.register(HipolabsProvider.create())
        registry.register(StaticProvider())

        provider = registry.get("static")
        ```
    """

    def __init__(self, default: str | None = None) -> None:
        """Initialize an empty registry.

        Args:
            default: Name returned by get_default(). Defaults to settings.
        """
        self._providers: dict[str, EntityProvider] = {}
        self._default = default or settings.provider_default

    def register(self, provider: EntityProvider) -> None:
        """Add a provider, replacing any provider with the same name."""
        if provider.name in self._providers:
            logger.info(f"Replacing provider {provider.name!r}")
        self._providers[provider.name] = provider

    def get(self, name: str) -> EntityProvider:
        """Look up a provider.

        Raises:
            UnknownProviderError: If nothing is registered under ``name``
        """
        try:
            return self._providers[name]
        except KeyError:
            raise UnknownProviderError(name, self.list_names()) from None

    def get_default(self) -> EntityProvider:
        """Look up the configured default provider.

        Raises:
            UnknownProviderError: If the default was never registered
        """
        return self.get(self._default)

    def list_names(self) -> list[str]:
        """Registered names, sorted."""
        return sorted(self._providers)

    def has(self, name: str) -> bool:
        return name in self._providers

    def all(self) -> list[EntityProvider]:
        """Registered providers, by name."""
        return [self._providers[name] for name in self.list_names()]

    @property
    def default_name(self) -> str:
        """Get the default provider name."""
        return self._default

    def __len__(self) -> int:
        return len(self._providers)
