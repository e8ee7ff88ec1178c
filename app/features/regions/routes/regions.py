from fastapi import APIRouter, Depends, Query, status

from app.context import AppContext, get_app_context
from app.platform.response import api_response

router = APIRouter(prefix="/regions", tags=["regions"])


@router.get("")
async def list_regions(
    high_risk_only: bool = Query(default=False, alias="highRiskOnly"),
    context: AppContext = Depends(get_app_context),
):
    """Region profiles, optionally only those with elevated litigation risk."""
    service = context.region_service
    summaries = [
        service.summarize(profile).model_dump(by_alias=True)
        for profile in service.list_profiles(high_risk_only=high_risk_only)
    ]
    return api_response(
        data={
            "regions": summaries,
            "lastVerified": service.dataset.last_verified,
            "disclaimer": service.dataset.disclaimer,
        },
        message=f"Retrieved {len(summaries)} regions",
    )


@router.get("/{region_code}")
async def get_region(region_code: str, context: AppContext = Depends(get_app_context)):
    service = context.region_service
    profile = service.get_profile(region_code)
    if profile is None:
        return api_response(
            message=f"Region {region_code.upper()} not found",
            status_code=status.HTTP_404_NOT_FOUND,
        )
    return api_response(
        data=service.summarize(profile).model_dump(by_alias=True),
        message="Region retrieved",
    )
