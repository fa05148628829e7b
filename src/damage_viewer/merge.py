"""
merge.py
Combines the damage records from the source with the local overrides.
"""


def is_deleted(patch):
    return bool(patch) and patch.get('deleted') is True


def merge(base_records, overrides):
    """
    Returns the effective records: each base record with its override
    applied field by field (override wins). Records whose override has
    deleted=True are left out. Base order is kept and the inputs are not
    modified, a new list is built every time.
    """
    merged = []
    for record in base_records:
        patch = overrides.get(record.id)
        if not patch:
            merged.append(record)
            continue
        if is_deleted(patch):
            continue
        merged.append(record.apply(patch))
    return merged


def find_record(records, damage_id):
    """First record with the given id, or None."""
    return next((r for r in records if r.id == damage_id), None)
