"""Chain Resolver: expand direct matches into full identity groups.

Email and phone are independent keys, so one request can match rows that
belong to different primaries. Matches are partitioned by the primary they
hang off, and each of those groups is fetched in full.
"""

from dataclasses import dataclass, field
from typing import Iterable, List

import structlog

from contact_store import ContactStore
from db_models import Contact

logger = structlog.get_logger(__name__)


@dataclass
class ResolvedChains:
    groups: List[List[Contact]] = field(default_factory=list)

    @property
    def is_new(self) -> bool:
        return not self.groups

    @property
    def needs_merge(self) -> bool:
        return len(self.groups) > 1

    @property
    def members(self) -> List[Contact]:
        return [contact for group in self.groups for contact in group]


def canonical_contact(contacts: Iterable[Contact]) -> Contact:
    """Oldest contact wins; ties go to the lowest id."""
    return min(contacts, key=lambda c: (c.createdAt, c.id))


def find_roots(matches: Iterable[Contact]) -> List[int]:
    return sorted({contact.root_id for contact in matches})


def resolve_chains(store: ContactStore, matches: List[Contact]) -> ResolvedChains:
    roots = find_roots(matches)
    if not roots:
        return ResolvedChains()

    groups = []
    for root_id in roots:
        group = store.find_group(root_id)
        if group:
            groups.append(group)

    if len(groups) > 1:
        logger.info("chains_to_merge", root_ids=roots)
    return ResolvedChains(groups=groups)
