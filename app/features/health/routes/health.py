from fastapi import APIRouter, Depends, status

from app.context import AppContext, get_app_context
from app.platform.response import api_response


router = APIRouter()

@router.get("/health", tags=["health"])
async def health_check(context: AppContext = Depends(get_app_context)):
    store_ok = await context.store.ping()
    return api_response(
        data={
            "status": "ok" if store_ok else "degraded",
            "service": context.settings.APP_NAME,
            "store_reachable": store_ok,
            "dependencies": context.modes(),
        },
        message="Service is healthy" if store_ok else "Service is degraded",
        status_code=status.HTTP_200_OK,
    )
