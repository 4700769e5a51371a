from fastapi import APIRouter

from portal.dependencies.auth import CurrentUser

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/me", summary="Resolve the calling user")
async def whoami(user: CurrentUser) -> dict[str, str | None]:
    return {"status": "ok", "user": user.id, "role": user.role.value, "area_id": user.area_id}
