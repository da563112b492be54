"""Identify flow: resolve, merge and consolidate one (email, phone) sighting."""

from typing import Callable, Optional, TypeVar

import structlog

from chain_resolver import resolve_chains
from contact_store import ContactStore
from db_models import ContactResponse
from exceptions import ConstraintError
from merge_executor import execute_merge
from response_builder import build_response
from validation import validate_identify_request

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def retry_on_conflict(operation: Callable[[], T], retries: int = 1) -> T:
    """Run ``operation``, re-running it up to ``retries`` times on ConstraintError."""
    attempt = 0
    while True:
        try:
            return operation()
        except ConstraintError as exc:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning("identify_conflict_retry", attempt=attempt, error=str(exc))


def _resolve_once(store: ContactStore, email: Optional[str], phone: Optional[str]) -> ContactResponse:
    with store.transaction():
        matches = store.find_by_email_or_phone(email, phone)
        resolved = resolve_chains(store, matches)
        primary_id = execute_merge(store, resolved, email, phone)
        # merges change precedence, so the group is read again
        return build_response(store.find_group(primary_id))


def resolve_identity(
    store: ContactStore,
    email: Optional[str],
    phone: Optional[str],
    *,
    strict: bool = False,
    conflict_retries: int = 1,
) -> ContactResponse:
    email = email or None
    phone = phone or None
    validate_identify_request(email, phone, strict=strict)

    response = retry_on_conflict(lambda: _resolve_once(store, email, phone), retries=conflict_retries)
    logger.info(
        "identify_resolved",
        primary_id=response.primaryContactId,
        secondary_count=len(response.secondaryContactIds),
    )
    return response
