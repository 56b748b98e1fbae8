"""Reading and writing attributes that exist in two schema generations.

Every attribute has a multi-valued column (``categories``, ``colors``) and a
legacy single-valued column (``category``, and for colors the category's own
column such as ``bleb_color``). Readers go through ``effective_values`` and
writers through ``dual_write`` so callers never see the duality.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from scope.services.data_store import MediaDataStore, PatchResult
from scope.vocabulary import AttributeFields, CATEGORY_FIELDS, DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)

SCHEMA_ABSENCE_SIGNATURES = (
    "does not exist",
    "unknown column",
    "no such column",
    "not found",
    "schema cache",
)


def is_schema_absence_error(message: Optional[str]) -> bool:
    """True when a write failed only because the target column is missing."""
    if not message:
        return False
    lowered = message.lower()
    return any(sig in lowered for sig in SCHEMA_ABSENCE_SIGNATURES)


def unique_values(values: Iterable[Optional[str]]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def effective_values(row: Dict[str, Any], fields: AttributeFields) -> List[str]:
    """Multi-valued column if present, else the legacy value, else empty.

    When both columns are populated and disagree the multi-valued one wins.
    """
    multi = row.get(fields.multi)
    if multi is not None:
        if isinstance(multi, str):
            multi = [multi]
        return unique_values(multi)
    if not fields.legacy:
        return []
    return unique_values([row.get(fields.legacy)])


def reconcile_row(row: Dict[str, Any], vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> Dict[str, Any]:
    """Copy of ``row`` with effective ``categories`` and ``colors`` lists.

    The legacy color column consulted is the one belonging to the record's
    first color-bearing category.
    """
    reconciled = dict(row)
    categories = effective_values(row, CATEGORY_FIELDS)
    color_fields = vocabulary.color_fields_for(categories)
    reconciled[CATEGORY_FIELDS.multi] = categories
    reconciled[color_fields.multi] = effective_values(row, color_fields)
    return reconciled


@dataclass
class DualWriteResult:
    ok: bool
    error: Optional[str] = None
    written: List[str] = field(default_factory=list)
    absent: List[str] = field(default_factory=list)


async def dual_write(
    store: MediaDataStore, record_id: str, fields: AttributeFields, values: List[str]
) -> DualWriteResult:
    """Persist ``values`` to both columns of ``fields``.

    Both writes are always attempted. A missing column is tolerated; any
    other failure fails the whole operation even if the other write landed.
    Without a legacy column only the list is written.
    """
    result = DualWriteResult(ok=True)
    first = values[0] if values else None
    writes = [(fields.multi, list(values))]
    if fields.legacy:
        writes.append((fields.legacy, first))
    for column, value in writes:
        patch: PatchResult = await store.patch_attributes(record_id, column, value)
        if patch.ok:
            result.written.append(column)
        elif is_schema_absence_error(patch.error):
            logger.info(f"Column {column} unavailable, skipping write for image {record_id}: {patch.error}")
            result.absent.append(column)
        else:
            logger.warning(f"Write of {column} on image {record_id} failed: {patch.error}")
            if result.ok:
                result.ok = False
                result.error = patch.error
    if result.ok and not result.written:
        result.ok = False
        columns = " nor ".join(column for column, _ in writes)
        result.error = f"{'Neither ' if fields.legacy else ''}{columns} exists on image_metadata"
    return result
