from fastapi import APIRouter

from purchasing.app.api.v1.endpoints.health import router as health_router
from purchasing.app.api.v1.endpoints.purchase_orders import router as purchase_orders_router
from purchasing.app.api.v1.endpoints.invoices import router as invoices_router
from purchasing.app.api.v1.endpoints.returns import router as returns_router
from purchasing.app.api.v1.endpoints.catalog import router as catalog_router
from purchasing.app.api.v1.endpoints.supplier_prices import router as supplier_prices_router
from purchasing.app.api.v1.endpoints.stock import router as stock_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(purchase_orders_router, tags=["purchase_orders"])
router.include_router(invoices_router, tags=["invoices"])
router.include_router(returns_router, tags=["returns"])
router.include_router(catalog_router, tags=["catalog"])
router.include_router(supplier_prices_router, tags=["supplier_prices"])
router.include_router(stock_router, tags=["stock"])
