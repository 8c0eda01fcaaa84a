"""
Elastisync Dependencies — Re-syncing Dependent Types
====================================================

A document can embed values from related records (an article's author
name, a page's tags). When such a related record changes, every instance
of each declared dependent type is re-synced.

Fan-out is one hop: dependents of dependents are not followed.
"""

import logging

from .records import Record, RecordStore

logger = logging.getLogger(__name__)


class DependencyPropagator:
    """Re-sync the dependent types of a changed record."""

    def __init__(self, service, store: RecordStore):
        self.service = service
        self.store = store

    def on_change(self, record: Record) -> int:
        """
        Re-sync all instances of the types depending on `record`'s type.

        Returns:
            Number of dependent records synced
        """
        descriptor = self.service.registry.get(record.type_name)
        if descriptor is None:
            return 0

        synced = 0
        for type_name in descriptor.dependent_types:
            if type_name not in self.service.registry:
                logger.warning("Dependent type %s of %s is not searchable", type_name, record.type_name)
                continue
            for dependent in self.store.all(type_name):
                self.service.sync(dependent)
                synced += 1

        if synced:
            logger.debug("Re-synced %d dependents of %s #%s", synced, record.type_name, record.id)
        return synced
