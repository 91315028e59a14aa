from typing import Optional
from supabase import create_client, Client, ClientOptions
from storefront.config import SUPABASE_URL, SUPABASE_ANON, SUPABASE_SERVICE_KEY, SUPABASE_TIMEOUT_SECONDS

_supabase: Optional[Client] = None
_service_supabase: Optional[Client] = None

def _options() -> ClientOptions:
    # Aucun appel PostgREST ne doit bloquer indéfiniment
    return ClientOptions(postgrest_client_timeout=SUPABASE_TIMEOUT_SECONDS)

def get_supabase() -> Client:
    global _supabase
    if _supabase is None:
        _supabase = create_client(SUPABASE_URL, SUPABASE_ANON, options=_options())
    return _supabase

def get_service_supabase() -> Client:
    """
    Client service-role (bypass RLS): écritures côté serveur sur orders/order_products,
    y compris depuis le webhook Stripe qui n'a pas de session utilisateur.
    """
    global _service_supabase
    if not SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_SERVICE_KEY manquant pour get_service_supabase()")
    if _service_supabase is None:
        _service_supabase = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY, options=_options())
    return _service_supabase
