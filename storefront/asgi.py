"""
ASGI entrypoint: expose `app` for process managers / deployments.

- En production, un process manager (ex: gunicorn/uvicorn-workers) importe `storefront.asgi:app`.
- Toute la configuration de FastAPI (routes, middlewares, handlers) est centralisée
  dans storefront.app_setup.factory, ce fichier ne fait qu'exposer l'instance `app`.
"""

from storefront.app import app
