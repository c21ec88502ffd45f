import logging
from fastapi import APIRouter, Depends, status
from stockroom.api.deps import get_kitchen, get_principal
from stockroom.core.permissions import Permission, Principal
from stockroom.schemas.inventory import (
    Outlet,
    OutletRequest,
    Product,
    ProductReorderUpdate,
    ProductRequest,
    ThresholdRequest,
)
from stockroom.schemas.order import MenuItem, MenuItemRequest
from stockroom.schemas.response import SuccessResponse
from stockroom.services.kitchen import Kitchen

log = logging.getLogger("uvicorn")

router = APIRouter()


@router.post("/outlets", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def add_outlet(body: OutletRequest, kitchen: Kitchen = Depends(get_kitchen),
                     principal: Principal = Depends(get_principal)):
    """Creates a new outlet record."""
    kitchen.authorizer.require(principal, Permission.MANAGE_OUTLETS)
    outlet = kitchen.outlets.add(Outlet(**body.model_dump()))
    return SuccessResponse(data=outlet.model_dump(mode="json"), message=f"Outlet '{outlet.name}' created successfully.")


@router.get("/outlets", response_model=SuccessResponse)
async def list_outlets(kitchen: Kitchen = Depends(get_kitchen), principal: Principal = Depends(get_principal)):
    """Outlets visible to the caller."""
    visible = [o for o in kitchen.outlets.list() if kitchen.authorizer.can_access_outlet(principal, o.id)]
    return SuccessResponse(data=[o.model_dump(mode="json") for o in visible])


@router.post("/products", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def add_product(body: ProductRequest, kitchen: Kitchen = Depends(get_kitchen),
                      principal: Principal = Depends(get_principal)):
    kitchen.authorizer.require(principal, Permission.ADD_PRODUCTS)
    product = kitchen.products.add(Product(**body.model_dump()))
    log.info(f"Product {product.id} ({product.name}) added to catalog.")
    return SuccessResponse(data=product.model_dump(mode="json"), message=f"Successfully added '{product.name}'.")


@router.get("/products", response_model=SuccessResponse)
async def list_products(kitchen: Kitchen = Depends(get_kitchen), principal: Principal = Depends(get_principal)):
    kitchen.authorizer.require(principal, Permission.VIEW_INVENTORY)
    return SuccessResponse(data=[p.model_dump(mode="json") for p in kitchen.products.list()])


@router.patch("/products/{product_id}", response_model=SuccessResponse)
async def update_product_reorder(product_id: str, body: ProductReorderUpdate, kitchen: Kitchen = Depends(get_kitchen),
                                 principal: Principal = Depends(get_principal)):
    """Only the threshold, reorder quantity and list price can change once a product exists."""
    kitchen.authorizer.require(principal, Permission.ADD_PRODUCTS)
    product = kitchen.products.update_reorder(product_id, **body.model_dump())
    return SuccessResponse(data=product.model_dump(mode="json"))


@router.post("/menu-items", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def add_menu_item(body: MenuItemRequest, kitchen: Kitchen = Depends(get_kitchen),
                        principal: Principal = Depends(get_principal)):
    """Adds a dish with its per-plate recipe."""
    kitchen.authorizer.require(principal, Permission.MANAGE_RECIPES)
    for ingredient in body.ingredients:
        kitchen.products.get(ingredient.product_id)
    menu_item = kitchen.menu.add(MenuItem(**body.model_dump()))
    return SuccessResponse(data=menu_item.model_dump(mode="json"), message=f"Successfully added '{menu_item.name}'.")


@router.get("/menu-items", response_model=SuccessResponse)
async def list_menu_items(active_only: bool = False, kitchen: Kitchen = Depends(get_kitchen),
                          principal: Principal = Depends(get_principal)):
    kitchen.authorizer.require(principal, Permission.VIEW_INVENTORY)
    return SuccessResponse(data=[m.model_dump(mode="json") for m in kitchen.menu.list(active_only)])


@router.put("/thresholds", response_model=SuccessResponse)
async def set_threshold(body: ThresholdRequest, kitchen: Kitchen = Depends(get_kitchen),
                        principal: Principal = Depends(get_principal)):
    """Creates or replaces the low-stock threshold of a product at an outlet."""
    kitchen.authorizer.require(principal, Permission.MANAGE_THRESHOLDS, body.outlet_id)
    kitchen.products.get(body.product_id)
    kitchen.outlets.get(body.outlet_id)
    threshold = kitchen.thresholds.set(body.product_id, body.outlet_id, body.threshold, reason=body.reason)
    return SuccessResponse(data=threshold.model_dump(mode="json"))


@router.get("/thresholds/{outlet_id}", response_model=SuccessResponse)
async def list_thresholds(outlet_id: str, kitchen: Kitchen = Depends(get_kitchen),
                          principal: Principal = Depends(get_principal)):
    kitchen.authorizer.require(principal, Permission.VIEW_INVENTORY, outlet_id)
    return SuccessResponse(data=[t.model_dump(mode="json") for t in kitchen.thresholds.list(outlet_id)])


@router.delete("/thresholds/{outlet_id}/{product_id}", response_model=SuccessResponse)
async def remove_threshold(outlet_id: str, product_id: str, kitchen: Kitchen = Depends(get_kitchen),
                           principal: Principal = Depends(get_principal)):
    kitchen.authorizer.require(principal, Permission.MANAGE_THRESHOLDS, outlet_id)
    removed = kitchen.thresholds.remove(product_id, outlet_id)
    return SuccessResponse(data=removed.model_dump(mode="json"), message="Threshold removed.")
