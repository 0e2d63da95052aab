"""
Reference validation between the authors and books collections.
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence

from catalog.models import FieldError

DANGLING_REFERENCE_MESSAGE = "referenced entity does not exist"


class DocumentLookup(Protocol):
    """Anything that can resolve a document id."""

    async def find_by_id(self, doc_id: Any) -> Optional[Dict[str, Any]]:
        ...


async def validate_references_exist(
    field: str,
    ids: Sequence[str],
    resolver: DocumentLookup
) -> List[FieldError]:
    """
    Check that every referenced id resolves to an existing document.

    Every occurrence is looked up, duplicates included, and the whole
    sequence is always checked so all dangling ids are reported together.
    An empty sequence is valid.

    Args:
        field: Name of the field holding the references
        ids: Referenced document ids
        resolver: Lookup over the referenced collection

    Returns:
        One FieldError per id that did not resolve
    """
    errors = []
    for doc_id in ids:
        if await resolver.find_by_id(doc_id) is None:
            errors.append(FieldError(field=field, message=DANGLING_REFERENCE_MESSAGE))
    return errors
