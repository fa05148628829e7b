"""
overrides.py
The override store: a table of partial patches keyed by damage id,
kept in local storage. Status changes, notes and deletions made in the
viewer are saved here and merged over the API data on every read.
"""

import logging

logger = logging.getLogger(__name__)

OVERRIDES_KEY = 'damagesStatusOverrides'


class OverrideStore:
    """
    get() returns the whole patch table, set() merges one patch into it.

    There is no way to remove a patch. Deleting a damage is just
    set(id, {"deleted": True}) and the patch stays in the table.
    """

    def __init__(self, storage, key=OVERRIDES_KEY):
        self.storage = storage
        self.key = key

    def get(self):
        """
        Returns {damage_id: patch}. A missing or corrupt table is treated as empty.
        """
        table = self.storage.get_json(self.key, default={})
        if not isinstance(table, dict):
            logger.warning(f"Override table under '{self.key}' is not an object, treating it as empty.")
            return {}
        return {str(k): v for k, v in table.items() if isinstance(v, dict)}

    def get_patch(self, damage_id):
        return self.get().get(str(damage_id), {})

    def set(self, damage_id, patch):
        """
        Merge patch into the existing patch for damage_id (new keys win,
        other keys are kept) and write the whole table back in one go.
        """
        logger.info(f"Saving override for ID {damage_id}: {patch}")
        table = self.get()
        key = str(damage_id)
        table[key] = {**table.get(key, {}), **patch}
        self.storage.set_json(self.key, table)
        return table[key]
