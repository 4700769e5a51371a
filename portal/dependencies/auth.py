from collections.abc import Mapping
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from portal.core.config import Settings, get_settings
from portal.dependencies.tickets import TicketServiceDep
from portal.tickets.errors import UserNotFoundError
from portal.tickets.models import User

bearer_scheme = HTTPBearer(auto_error=False)


def resolve_user_id(token: str | None, tokens: Mapping[str, str]) -> str:
    """Return the user id bound to the bearer token."""

    if token is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user_id = tokens.get(token)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    return user_id


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    request: Request,
    service: TicketServiceDep,
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    """Map a static API token to a portal user.

    Tokens are configured through ``PORTAL_API_TOKENS``; the user record,
    including role and area, always comes from the store so that role changes
    take effect without reissuing tokens.
    """

    cached = getattr(request.state, "user", None)
    if isinstance(cached, User):
        return cached

    token = credentials.credentials if credentials is not None else None
    user_id = resolve_user_id(token, settings.api_tokens)
    try:
        user = await service.get_user(user_id)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials") from exc
    request.state.user = user
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
