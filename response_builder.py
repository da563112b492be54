from typing import List, Optional

from db_models import Contact, ContactResponse
from exceptions import InvariantViolation


def _ordered_unique(first: Optional[str], values: List[Optional[str]]) -> List[str]:
    result = []
    if first is not None:
        result.append(first)
    for value in values:
        if value is not None and value not in result:
            result.append(value)
    return result


def build_response(group: List[Contact]) -> ContactResponse:
    """Project a freshly read identity group into the identify response."""
    primaries = [c for c in group if c.is_primary]
    if len(primaries) != 1:
        raise InvariantViolation(
            f"expected exactly one primary contact, found {len(primaries)} "
            f"among ids {sorted(c.id for c in group)}"
        )
    primary = primaries[0]

    return ContactResponse(
        primaryContactId=primary.id,
        emails=_ordered_unique(primary.email, [c.email for c in group]),
        phoneNumbers=_ordered_unique(primary.phoneNumber, [c.phoneNumber for c in group]),
        secondaryContactIds=sorted(c.id for c in group if not c.is_primary),
    )
