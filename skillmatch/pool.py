"""Eligible pool resolution — who can be considered for an assignment."""

from skillmatch.exceptions import EmptyPoolError
from skillmatch.log import get_logger

logger = get_logger(__name__)


def _dedupe(worker_ids) -> list[str]:
    seen: set[str] = set()
    result = []
    for wid in worker_ids:
        if not wid or wid in seen:
            continue
        seen.add(wid)
        result.append(wid)
    return result


class PoolResolver:
    """Delivery-group members, falling back to the whole organizational unit."""

    def __init__(self, store):
        self.store = store

    def resolve(self, pool_id: str, org_id: str) -> list[str]:
        """Eligible worker ids in enumeration order. Raises EmptyPoolError if none exist."""
        members = _dedupe(self.store.get_pool_members(pool_id))
        if members:
            return members

        members = _dedupe(self.store.get_org_members(org_id))
        if members:
            logger.info("Pool %s is empty, falling back to %d members of org %s",
                        pool_id, len(members), org_id)
            return members

        raise EmptyPoolError(pool_id, org_id)
