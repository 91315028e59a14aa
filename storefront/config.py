# storefront.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du storefront.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe)
- Expose les bornes de temps des appels externes (Stripe, Supabase, verrous)
- Paramètres du panier côté client (nom du store persistant, répertoire, URL API)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _float_env(name: str, default: float) -> float:
    try:
        return float(_clean_env(os.getenv(name) or "") or default)
    except ValueError:
        return default

def _int_env(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name) or "") or default)
    except ValueError:
        return default

# Supabase: URL et clés (anon/service)
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")
SUPABASE_TIMEOUT_SECONDS = _float_env("SUPABASE_TIMEOUT_SECONDS", 10.0)

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Stripe: clé secrète, secret webhook, bornes réseau
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")
STRIPE_TIMEOUT_SECONDS = _float_env("STRIPE_TIMEOUT_SECONDS", 10.0)
STRIPE_MAX_NETWORK_RETRIES = _int_env("STRIPE_MAX_NETWORK_RETRIES", 2)

# Devise des intents et commandes (unités mineures)
CURRENCY = (_clean_env(os.getenv("CURRENCY") or "") or "usd").lower()

# Sérialisation par payment intent (acquisition bornée)
LOCK_TIMEOUT_SECONDS = _float_env("LOCK_TIMEOUT_SECONDS", 10.0)

# CORS / hosts
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

# Panier côté client: nom fixe du store persistant et emplacement
CART_STORE_NAME = _clean_env(os.getenv("CART_STORE_NAME") or "") or "cart-store"
CART_STORAGE_DIR = Path(_clean_env(os.getenv("CART_STORAGE_DIR") or "") or str(BASE_DIR / ".cart"))
CHECKOUT_API_URL = _clean_env(os.getenv("CHECKOUT_API_URL") or "http://localhost:8000")
