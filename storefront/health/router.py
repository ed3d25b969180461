from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from storefront.health import service
from storefront.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_root(request: Request):
    return {
        "ok": True,
        "payments": request.app.state.payment_gateway.configured,
        "stock_clients": request.app.state.stock_broadcaster.connection_count,
        "rate_limit": rate_limit_health_info(request),
    }


@router.get("/supabase")
def health_supabase():
    info = service.health_supabase_info()
    return JSONResponse(info, status_code=200 if info.get("connect_ok") else 503)
