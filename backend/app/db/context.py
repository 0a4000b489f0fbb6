"""Request context for ownership enforcement."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class RequestContext:
    """Request context containing the acting user's identity.

    Every document and version operation is checked against ``user_id``.
    """

    user_id: UUID
