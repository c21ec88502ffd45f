import logging
from typing import Optional
from fastapi import APIRouter, Depends, status
from stockroom.api.deps import get_kitchen, get_principal
from stockroom.core.permissions import Permission, Principal
from stockroom.events.inventory_events import low_stock_events
from stockroom.events.outbox_utility import publish_or_revert, record_event
from stockroom.schemas.inventory import AuditRequest, ReceiveRequest, TransferRequest, WastageRequest
from stockroom.schemas.response import SuccessResponse
from stockroom.services.kitchen import Kitchen

log = logging.getLogger("uvicorn")

router = APIRouter()


@router.get("/{outlet_id}/stock/{product_id}", response_model=SuccessResponse)
async def get_stock(outlet_id: str, product_id: str, kitchen: Kitchen = Depends(get_kitchen),
                    principal: Principal = Depends(get_principal)):
    """Current on-hand quantity: the sum of the product's batches at the outlet."""
    kitchen.authorizer.require(principal, Permission.VIEW_INVENTORY, outlet_id)
    product = kitchen.products.get(product_id)
    quantity = kitchen.ledger.get_stock(product_id, outlet_id)
    return SuccessResponse(data={
        "product_id": product_id,
        "outlet_id": outlet_id,
        "quantity": str(quantity),
        "unit": product.unit.value,
    })


@router.get("/{outlet_id}/batches", response_model=SuccessResponse)
async def list_batches(outlet_id: str, product_id: Optional[str] = None, kitchen: Kitchen = Depends(get_kitchen),
                       principal: Principal = Depends(get_principal)):
    """Batches in draw-down order (earliest expiry first)."""
    kitchen.authorizer.require(principal, Permission.VIEW_INVENTORY, outlet_id)
    batches = kitchen.ledger.batches(outlet_id, product_id)
    return SuccessResponse(data=[b.model_dump(mode="json") for b in batches])


@router.post("/receive", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def receive_goods(body: ReceiveRequest, kitchen: Kitchen = Depends(get_kitchen),
                        principal: Principal = Depends(get_principal)):
    """Goods receiving: adds a new batch to the outlet's ledger."""
    kitchen.authorizer.require(principal, Permission.ADD_INVENTORY, body.outlet_id)
    receipt = kitchen.movements.receive(
        body.product_id, body.outlet_id, body.quantity,
        price=body.price, source=body.source, expiry_date=body.expiry_date,
    )
    await publish_or_revert(
        [record_event("inventory", "inventory.received.v1", receipt)],
        lambda: kitchen.movements.revert_receipt(receipt),
    )
    return SuccessResponse(data=receipt.model_dump(mode="json"), message="Goods received.")


@router.post("/wastage", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def record_wastage(body: WastageRequest, kitchen: Kitchen = Depends(get_kitchen),
                         principal: Principal = Depends(get_principal)):
    kitchen.authorizer.require(principal, Permission.REDUCE_INVENTORY, body.outlet_id)
    entry = kitchen.movements.record_wastage(body.product_id, body.outlet_id, body.quantity, body.reason)
    await publish_or_revert(
        [record_event("inventory", "inventory.wasted.v1", entry)]
        + low_stock_events(kitchen.monitor, [(body.product_id, body.outlet_id)]),
        lambda: kitchen.movements.revert_wastage(entry),
    )
    return SuccessResponse(data=entry.model_dump(mode="json"), message="Wastage recorded.")


@router.post("/transfer", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def transfer_stock(body: TransferRequest, kitchen: Kitchen = Depends(get_kitchen),
                         principal: Principal = Depends(get_principal)):
    """Moves stock between two outlets; both sides change or neither does."""
    kitchen.authorizer.require(principal, Permission.OUTLET_TRANSFER, body.from_outlet_id)
    record = kitchen.movements.transfer(
        body.from_outlet_id, body.to_outlet_id, body.product_id, body.quantity,
        transfer_price=body.transfer_price,
    )
    await publish_or_revert(
        [record_event("inventory", "inventory.transferred.v1", record)]
        + low_stock_events(kitchen.monitor, [(body.product_id, body.from_outlet_id)]),
        lambda: kitchen.movements.revert_transfer(record),
    )
    log.info(f"Transfer {record.id}: {record.quantity} of {record.product_id} {record.from_outlet_id} -> {record.to_outlet_id}")
    return SuccessResponse(data=record.model_dump(mode="json"), message="Stock transferred.")


@router.post("/audit", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def audit_stock(body: AuditRequest, kitchen: Kitchen = Depends(get_kitchen),
                      principal: Principal = Depends(get_principal)):
    """Records a physical count. The ledger is unchanged until the audit is applied."""
    kitchen.authorizer.require(principal, Permission.MANAGE_INVENTORY, body.outlet_id)
    audit = kitchen.movements.audit(body.product_id, body.outlet_id, body.actual_quantity, notes=body.notes)
    await publish_or_revert(
        [record_event("inventory", "inventory.audited.v1", audit)],
        lambda: kitchen.movements.revert_audit(audit),
    )
    return SuccessResponse(data=audit.model_dump(mode="json"), message="Audit recorded.")


@router.post("/audit/{audit_id}/apply", response_model=SuccessResponse)
async def apply_audit(audit_id: str, kitchen: Kitchen = Depends(get_kitchen),
                      principal: Principal = Depends(get_principal)):
    """Reconciles the ledger to the audit's counted quantity."""
    audit = kitchen.journal.get_audit(audit_id)
    kitchen.authorizer.require(principal, Permission.MANAGE_INVENTORY, audit.outlet_id)
    corrected = kitchen.movements.apply_audit_correction(audit_id)
    await publish_or_revert(
        [record_event("inventory", "inventory.audit_corrected.v1", corrected)]
        + low_stock_events(kitchen.monitor, [(corrected.product_id, corrected.outlet_id)]),
        lambda: kitchen.movements.revert_audit_correction(corrected),
    )
    return SuccessResponse(data=corrected.model_dump(mode="json"), message="Audit correction applied.")
