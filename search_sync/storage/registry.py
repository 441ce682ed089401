"""
Index backend registry and factory.

Provides a centralized system for registering search backends and creating
index clients from server configuration.
"""

import logging
from typing import Callable, Dict, List, Optional

from ..errors import ConfigurationError
from ..models.config import ServerConfig
from .base import IndexClient
from .client import QdrantIndexClient
from .memory import InMemoryIndexClient

logger = logging.getLogger(__name__)

IndexClientFactory = Callable[[ServerConfig], IndexClient]


class IndexClientRegistry:
    """Registry of index backends with factory methods"""

    def __init__(self, register_builtins: bool = True):
        self._factories: Dict[str, IndexClientFactory] = {}
        self._aliases: Dict[str, str] = {}
        self._descriptions: Dict[str, str] = {}

        if register_builtins:
            self._register_builtin_backends()

    def _register_builtin_backends(self) -> None:
        """Register built-in backend implementations"""
        self.register_backend(
            name="qdrant",
            factory=lambda config: QdrantIndexClient(
                url=config.url,
                api_key=config.api_key,
                timeout=config.timeout
            ),
            description="Qdrant collections with payload-only points"
        )
        self.register_backend(
            name="memory",
            factory=lambda config: InMemoryIndexClient(),
            description="Process-local dict index for dry runs"
        )

        self.register_alias("default", "qdrant")

    def register_backend(self, name: str, factory: IndexClientFactory, description: str = "") -> None:
        """
        Register a backend factory.

        Args:
            name: Unique backend name used as ``server.type``
            factory: Callable building a client from server configuration
            description: Human-readable description
        """
        if not name or not isinstance(name, str):
            raise ValueError("Backend name must be a non-empty string")

        self._factories[name] = factory
        self._descriptions[name] = description
        logger.debug(f"Registered index backend: {name} ({description})")

    def register_alias(self, alias: str, target: str) -> None:
        if target not in self._factories:
            raise ValueError(f"Target backend '{target}' not found")
        self._aliases[alias] = target

    def _resolve(self, name: str) -> str:
        return self._aliases.get(name, name)

    def get_available_backends(self) -> List[str]:
        return list(self._factories)

    def create_index_client(self, config: ServerConfig) -> IndexClient:
        """
        Create an index client for the configured backend type.

        Raises:
            ConfigurationError: If the type is missing or not registered
        """
        backend = self._resolve(config.type) if config.type else None
        if not backend or backend not in self._factories:
            raise ConfigurationError(
                f"Broken config file. Missing or invalid indexer type \"{config.type or 'Unknown'}\". "
                f"Available types: {self.get_available_backends()}"
            )
        return self._factories[backend](config)


DEFAULT_REGISTRY = IndexClientRegistry()


def create_index_client(
    config: ServerConfig,
    registry: Optional[IndexClientRegistry] = None
) -> IndexClient:
    """Create an index client using the default registry unless one is given"""
    return (registry or DEFAULT_REGISTRY).create_index_client(config)
