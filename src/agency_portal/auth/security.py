"""Authentication dependency – reverse-proxy principal header or mock bypass."""

import logging
from dataclasses import dataclass, field

from fastapi import HTTPException, Request

from agency_portal.settings import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Mock user (AUTH_MODE=mock)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FakeUser:
    """Stub user returned when AUTH_MODE=mock."""

    id: str = "local-dev-user"
    email: str = "dev@localhost"
    name: str = "Local Developer"
    claims: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Branch on auth mode
# ---------------------------------------------------------------------------

if settings.auth_mode == "header":

    async def get_current_user(request: Request) -> dict:
        """Return the user the authenticating proxy vouched for."""
        principal = request.headers.get(settings.auth_principal_header, "").strip()
        if not principal:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return {"id": principal, "email": principal, "name": principal, "claims": {}}

else:
    logger.warning("AUTH_MODE=mock — authentication is DISABLED. Do NOT use this in production.")

    async def get_current_user(request: Request) -> dict:  # type: ignore[misc]
        """Return a fake user (mock mode)."""
        return FakeUser().__dict__
