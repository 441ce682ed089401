"""
Relational schema models consumed by the reconciliation engine.

Describes collections with their primary keys and the foreign-key relations
between them, as reported by a schema provider.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict


class CollectionSchema(BaseModel):
    """Schema facts about one collection"""
    model_config = ConfigDict(frozen=True)

    name: str
    primary: str = "id"
    columns: List[str] = Field(default_factory=list)


class ForeignKey(BaseModel):
    """Column-level details of a foreign key"""
    model_config = ConfigDict(frozen=True)

    column: str
    foreign_key_table: Optional[str] = None
    foreign_key_column: Optional[str] = None


class Relation(BaseModel):
    """
    Foreign key from ``collection`` (owning side) to ``related_collection``.

    ``foreign_key`` is None when the referencing column cannot be determined.
    """
    model_config = ConfigDict(frozen=True)

    collection: str
    related_collection: Optional[str] = None
    foreign_key: Optional[ForeignKey] = None

    @property
    def column(self) -> Optional[str]:
        """Referencing column on the owning collection"""
        return self.foreign_key.column if self.foreign_key else None


class Schema(BaseModel):
    """Snapshot of collections and relations"""
    model_config = ConfigDict(frozen=True)

    collections: Dict[str, CollectionSchema] = Field(default_factory=dict)
    relations: List[Relation] = Field(default_factory=list)

    def has_collection(self, collection: str) -> bool:
        return collection in self.collections

    def primary_key(self, collection: str) -> str:
        """Primary-key field of a known collection"""
        return self.collections[collection].primary
