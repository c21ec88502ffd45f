import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, status
from stockroom.api.deps import get_kitchen, get_principal
from stockroom.core.permissions import Permission, Principal
from stockroom.events.outbox_utility import publish_events, record_event
from stockroom.schemas.response import SuccessResponse
from stockroom.services.kitchen import Kitchen
from stockroom.schemas.order import OrderSource
from stockroom.services.reports import dashboard_metrics, manual_orders_report, recipe_profitability, vendor_performance

log = logging.getLogger("uvicorn")

router = APIRouter()


@router.post("/daily-summary/{outlet_id}", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def generate_daily_summary(outlet_id: str, day: Optional[date] = None, kitchen: Kitchen = Depends(get_kitchen),
                                 principal: Principal = Depends(get_principal)):
    """
    Generates the end-of-day summary for an outlet and queues it for delivery.
    Defaults to today.
    """
    kitchen.authorizer.require(principal, Permission.VIEW_REPORTS, outlet_id)
    summary = kitchen.summaries.generate_summary(outlet_id, day or kitchen.clock().date())
    await publish_events([record_event("summary", "summary.generated.v1", summary)])
    log.info(f"Daily summary {summary.id} queued for {len(summary.sent_to)} recipients.")
    return SuccessResponse(data=summary.model_dump(mode="json"), message="Daily summary generated.")


@router.get("/dashboard/{outlet_id}", response_model=SuccessResponse)
async def dashboard(outlet_id: str, kitchen: Kitchen = Depends(get_kitchen),
                    principal: Principal = Depends(get_principal)):
    kitchen.authorizer.require(principal, Permission.VIEW_REPORTS, outlet_id)
    kitchen.outlets.get(outlet_id)
    metrics = dashboard_metrics(kitchen.monitor, kitchen.journal, outlet_id, kitchen.clock())
    return SuccessResponse(data=metrics.model_dump(mode="json"))


@router.get("/recipe-profitability", response_model=SuccessResponse)
async def profitability(kitchen: Kitchen = Depends(get_kitchen), principal: Principal = Depends(get_principal)):
    kitchen.authorizer.require(principal, Permission.VIEW_REPORTS)
    rows = recipe_profitability(kitchen.menu.list(active_only=True))
    return SuccessResponse(data=[r.model_dump(mode="json") for r in rows])


@router.get("/vendor-performance", response_model=SuccessResponse)
async def vendor_performance_report(outlet_id: Optional[str] = None, kitchen: Kitchen = Depends(get_kitchen),
                                    principal: Principal = Depends(get_principal)):
    """On-time delivery rate per supplier, over one outlet's purchase orders or all of them."""
    kitchen.authorizer.require(principal, Permission.VIEW_REPORTS, *filter(None, [outlet_id]))
    orders = [
        po for po in kitchen.purchase_orders.list(outlet_id)
        if kitchen.authorizer.can_access_outlet(principal, po.outlet_id)
    ]
    rows = vendor_performance(orders)
    return SuccessResponse(data=[r.model_dump(mode="json") for r in rows])


@router.get("/manual-orders", response_model=SuccessResponse)
async def manual_orders(outlet_id: Optional[str] = None, source: Optional[OrderSource] = None,
                        date_from: Optional[date] = None, date_to: Optional[date] = None,
                        kitchen: Kitchen = Depends(get_kitchen), principal: Principal = Depends(get_principal)):
    """Order count, revenue and ingredient cost of manual orders, filtered like the order list."""
    kitchen.authorizer.require(principal, Permission.VIEW_REPORTS, *filter(None, [outlet_id]))
    orders = [
        o for o in kitchen.orders.list(outlet_id, source=source, date_from=date_from, date_to=date_to)
        if kitchen.authorizer.can_access_outlet(principal, o.outlet_id)
    ]
    report = manual_orders_report(orders, outlet_id=outlet_id, date_from=date_from, date_to=date_to)
    return SuccessResponse(data=report.model_dump(mode="json"))
