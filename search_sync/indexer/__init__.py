"""
Reconciliation engine for search-sync.

Keeps search indexes consistent with relational collections as rows change.

Key Components:
- Reconciler: Orchestrates initialization, incremental updates and deletes
- RelationPropagator: Finds indexed collections affected one foreign key away
- TransformPipeline: Turns rows into index documents
- InitializedIndexSet: Records indexes already reset in this process
"""

from .helpers import TransformToolkit, flatten_object, filtered_object, object_map, strip_tags
from .resolvers import DocumentKeyResolver, IndexNameResolver
from .transform import TransformPipeline
from .relations import RelationPropagator
from .state import InitializedIndexSet
from .reconciler import Reconciler

__all__ = [
    "Reconciler",
    "RelationPropagator",
    "TransformPipeline",
    "TransformToolkit",
    "InitializedIndexSet",
    "IndexNameResolver",
    "DocumentKeyResolver",
    "flatten_object",
    "filtered_object",
    "object_map",
    "strip_tags"
]
