from fastapi import APIRouter, Depends, status
from stockroom.api.deps import get_kitchen, get_principal
from stockroom.core.permissions import Permission, Principal
from stockroom.schemas.hygiene import HygieneLogRequest, HygieneReviewRequest
from stockroom.schemas.response import SuccessResponse
from stockroom.services.kitchen import Kitchen

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def upload_hygiene_log(body: HygieneLogRequest, kitchen: Kitchen = Depends(get_kitchen),
                             principal: Principal = Depends(get_principal)):
    """Registers an uploaded kitchen photo for review."""
    kitchen.authorizer.require(principal, Permission.UPLOAD_HYGIENE, body.outlet_id)
    entry = kitchen.hygiene.add(body.outlet_id, body.photo_url, comments=body.comments)
    return SuccessResponse(data=entry.model_dump(mode="json"), message="Hygiene log uploaded.")


@router.get("/", response_model=SuccessResponse)
async def list_hygiene_logs(outlet_id: str, kitchen: Kitchen = Depends(get_kitchen),
                            principal: Principal = Depends(get_principal)):
    kitchen.authorizer.require(principal, Permission.VIEW_INVENTORY, outlet_id)
    return SuccessResponse(data=[e.model_dump(mode="json") for e in kitchen.hygiene.list(outlet_id)])


@router.post("/{log_id}/review", response_model=SuccessResponse)
async def review_hygiene_log(log_id: str, body: HygieneReviewRequest, kitchen: Kitchen = Depends(get_kitchen),
                             principal: Principal = Depends(get_principal)):
    entry = kitchen.hygiene.get(log_id)
    kitchen.authorizer.require(principal, Permission.REVIEW_HYGIENE, entry.outlet_id)
    entry = kitchen.hygiene.review(log_id, body.status)
    return SuccessResponse(data=entry.model_dump(mode="json"), message=f"Hygiene log {body.status.value}.")
