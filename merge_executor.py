"""Merge Executor: collapse resolved chains under one canonical primary."""

from typing import Optional

import structlog

from chain_resolver import ResolvedChains, canonical_contact
from contact_store import ContactStore
from db_models import LinkPrecedence

logger = structlog.get_logger(__name__)


def has_new_information(resolved: ResolvedChains, email: Optional[str], phone: Optional[str]) -> bool:
    """True when the request carries something the merged group does not know yet.

    The exact (email, phone) pair must be absent and at least one of the
    supplied values must be unseen; a request made only of known values
    records nothing.
    """
    members = resolved.members
    if any(c.email == email and c.phoneNumber == phone for c in members):
        return False

    known_emails = {c.email for c in members if c.email is not None}
    known_phones = {c.phoneNumber for c in members if c.phoneNumber is not None}
    new_email = email is not None and email not in known_emails
    new_phone = phone is not None and phone not in known_phones
    return new_email or new_phone


def execute_merge(
    store: ContactStore,
    resolved: ResolvedChains,
    email: Optional[str],
    phone: Optional[str],
) -> int:
    """Apply the merge for one request and return the canonical primary id."""
    if resolved.is_new:
        contact = store.insert(email, phone, None, LinkPrecedence.PRIMARY)
        return contact.id

    members = resolved.members
    canonical = canonical_contact(members)

    # the old primary may have been soft-deleted, leaving an orphaned secondary
    if not canonical.is_primary:
        store.relink(canonical.id, LinkPrecedence.PRIMARY, None)

    demoted = []
    for contact in members:
        if contact.id == canonical.id:
            continue
        if not contact.is_primary and contact.linkedId == canonical.id:
            continue
        if contact.is_primary:
            demoted.append(contact.id)
        store.relink(contact.id, LinkPrecedence.SECONDARY, canonical.id)

    if demoted:
        logger.info("chains_merged", primary_id=canonical.id, demoted_ids=demoted)

    if has_new_information(resolved, email, phone):
        store.insert(email, phone, canonical.id, LinkPrecedence.SECONDARY)

    return canonical.id
