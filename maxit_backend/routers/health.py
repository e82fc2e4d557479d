from fastapi import APIRouter

from maxit_backend.schemas.common import APIResponse, success

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness check")
def health() -> APIResponse[dict[str, str]]:
    return success({"status": "ok"})
