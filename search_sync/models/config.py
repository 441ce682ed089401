"""
Configuration models for search-sync.

Handles backend server settings, per-collection indexing rules, and global
runtime settings loaded from the environment.
"""

import importlib
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def import_hook(path: str) -> Callable[..., Any]:
    """Resolve a ``package.module:function`` reference to a callable"""
    module_name, sep, attr_path = path.partition(':')
    if not sep or not module_name or not attr_path:
        raise ValueError(f'Hook must look like "package.module:function", got {path!r}')

    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ValueError(f'Cannot import hook module {module_name!r}: {e}')

    for attr in attr_path.split('.'):
        try:
            target = getattr(target, attr)
        except AttributeError:
            raise ValueError(f'Hook {path!r} not found')

    if not callable(target):
        raise ValueError(f'Hook {path!r} is not callable')
    return target


class ServerConfig(BaseModel):
    """Search backend connection settings"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        populate_by_name=True
    )

    # Backend selection, validated against the registry at startup
    type: Optional[str] = None

    # Connection settings
    url: str = "http://localhost:6333"
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    timeout: float = Field(default=60.0, gt=0)

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate server URL format"""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('Server URL must start with http:// or https://')
        return v.rstrip('/')


class CollectionConfig(BaseModel):
    """Indexing rules for one collection"""
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        arbitrary_types_allowed=True
    )

    index_name: Optional[str] = Field(default=None, alias="indexName")
    fields: Optional[List[str]] = None
    filter: Dict[str, Any] = Field(default_factory=dict)
    transform: Optional[Callable[..., Any]] = None
    collection_field: Optional[str] = Field(default=None, alias="collectionField")
    compute_pk: Optional[Callable[..., Any]] = Field(default=None, alias="computePk")
    settings: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('transform', 'compute_pk', mode='before')
    @classmethod
    def resolve_hook(cls, v: Any) -> Any:
        """Import hooks given as dotted references"""
        if isinstance(v, str):
            return import_hook(v.strip())
        return v

    @field_validator('fields')
    @classmethod
    def validate_fields(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        """Strip field paths and reject an empty allowlist"""
        if v is None:
            return v
        cleaned = [field.strip() for field in v if field.strip()]
        if not cleaned:
            raise ValueError('Field list cannot be empty, omit it to index all fields')
        return cleaned

    @field_validator('filter', 'settings', mode='before')
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator('index_name')
    @classmethod
    def validate_index_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError('Index name cannot be blank')
        return v.strip() if v else v


class SyncConfig(BaseModel):
    """Top-level configuration for the reconciliation engine"""
    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    collections: Dict[str, CollectionConfig] = Field(default_factory=dict)

    # Paging and concurrency
    batch_limit: int = Field(default=100, ge=1, le=10000, alias="batchLimit")
    max_concurrent_operations: int = Field(
        default=4, ge=1, le=64, alias="maxConcurrentOperations"
    )

    @field_validator('collections')
    @classmethod
    def validate_collection_names(cls, v: Dict[str, CollectionConfig]) -> Dict[str, CollectionConfig]:
        for name in v:
            if not name or not name.strip():
                raise ValueError('Collection names cannot be blank')
        return v

    def is_configured(self, collection: str) -> bool:
        """Check if a collection is indexed"""
        return collection in self.collections

    def get_collection(self, collection: str) -> Optional[CollectionConfig]:
        return self.collections.get(collection)


class GlobalSettings(BaseSettings):
    """Global application settings with environment variable support"""
    model_config = SettingsConfigDict(
        env_prefix="SEARCH_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Inputs
    config_file: Path = Path("search-sync.json")
    database: Optional[Path] = None

    # Logging
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    log_file: Optional[Path] = None

    @field_validator('log_level', mode='before')
    @classmethod
    def upper_log_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v
