from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from urllib.parse import urlparse

from storefront.config import SUPABASE_URL
from storefront.utils.rate_limit import rate_limit_health_info
import storefront.infra.supabase_client as supabase_client

router = APIRouter(prefix="/health", tags=["Health"])

STORE_TABLES = ("orders", "order_products")

@router.get("")
def health_root():
    return {"ok": True}

def _check_table(client, name: str):
    try:
        res = client.table(name).select("id").limit(1).execute()
        return {"ok": True, "rows": len(res.data or [])}
    except Exception as e:
        return {"ok": False, "error": str(e)}

@router.get("/supabase")
def health_supabase():
    parsed = urlparse(SUPABASE_URL) if SUPABASE_URL else None
    info = {
        "hostname": parsed.hostname if parsed else None,
        "connect_ok": False,
        "error": None,
        "tables": {},
    }
    try:
        client = supabase_client.get_service_supabase()
        for t in STORE_TABLES:
            info["tables"][t] = _check_table(client, t)
        info["connect_ok"] = all(t["ok"] for t in info["tables"].values())
    except Exception as e:
        info["error"] = str(e)
    return JSONResponse(info, status_code=200 if info["connect_ok"] else 503)

@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return rate_limit_health_info(request)
