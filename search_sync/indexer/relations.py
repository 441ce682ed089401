"""
One-hop relation propagation.

When a collection that is not indexed itself changes, the indexed collections
holding a foreign key into it may embed stale data. This module finds those
collections and the ids of their affected rows.
"""

import logging
from typing import Dict, Iterable, List, Sequence

from ..errors import get_error_message
from ..models.config import SyncConfig
from ..models.schema import Relation
from ..models.storage import RowId, RowQuery
from ..storage.base import RowReader
from ..paths import PATH_SEPARATOR, WILDCARD

logger = logging.getLogger(__name__)


class RelationPropagator:
    """Compute configured collections affected by a change one FK hop away"""

    def __init__(self, config: SyncConfig, row_reader: RowReader):
        self._config = config
        self._row_reader = row_reader

    async def related_updates(
        self,
        relations: Sequence[Relation],
        collection: str,
        ids: Iterable[RowId]
    ) -> Dict[str, List[RowId]]:
        """
        Find rows of configured collections that reference changed rows.

        Only relations pointing into ``collection`` from a configured
        collection with a known referencing column are followed, and only
        when that column feeds the owning collection's field allowlist.
        Propagation is not transitive.

        Args:
            relations: All relations of the current schema
            collection: Collection whose rows changed
            ids: Changed primary-key values

        Returns:
            Mapping of owning collection to deduplicated affected ids
        """
        changed_ids = list(ids)
        affected: Dict[str, List[RowId]] = {}

        if not changed_ids:
            return affected

        for relation in relations:
            if relation.related_collection != collection:
                continue

            owner = relation.collection
            if not self._config.is_configured(owner):
                continue

            # Without the referencing column there is no way to find affected rows
            column = relation.column
            if not column:
                logger.debug(f"Relation {owner} -> {collection} has no foreign key column, skipping")
                continue

            if not self._column_is_indexed(owner, column):
                logger.debug(f"Column {owner}.{column} is not indexed, skipping propagation")
                continue

            try:
                keys = await self._row_reader.get_keys_by_query(
                    owner,
                    RowQuery(filter={column: {"_in": changed_ids}})
                )
            except Exception as e:
                logger.warning(
                    f"Cannot resolve rows of \"{owner}\" related to \"{collection}\". "
                    f"{get_error_message(e)}"
                )
                logger.debug("Relation lookup failure", exc_info=True)
                continue

            if not keys:
                continue

            merged = affected.setdefault(owner, [])
            seen = {str(key) for key in merged}
            for key in keys:
                if str(key) not in seen:
                    seen.add(str(key))
                    merged.append(key)

        return affected

    def _column_is_indexed(self, collection: str, column: str) -> bool:
        """Check whether ``column`` contributes to the collection's documents"""
        fields = self._config.collections[collection].fields
        if not fields:
            return True

        for field in fields:
            head = field.split(PATH_SEPARATOR, 1)[0]
            if head == column or head == WILDCARD:
                return True
        return False
