"""
Caller identity passed explicitly into state-changing core operations.

Authentication itself happens outside this service; the HTTP layer only
turns the X-Caller-Id header into a CallerContext.
"""

from dataclasses import dataclass
from typing import Optional

from ..exceptions import UnauthorizedError


@dataclass(frozen=True)
class CallerContext:
    caller_id: Optional[str] = None
    authorized: bool = False

    @classmethod
    def for_caller(cls, caller_id: Optional[str]) -> "CallerContext":
        caller_id = (caller_id or "").strip()
        return cls(caller_id=caller_id or None, authorized=bool(caller_id))

    def ensure_authorized(self) -> None:
        if not self.authorized:
            raise UnauthorizedError("Authentication required to modify reservations")
