"""
Gestionnaires d'exceptions.
- CheckoutError (taxonomie payments): {"detail", "code"} avec le statut porté par l'erreur,
  le client du panier s'appuie sur "code" pour décider (réauth, redémarrage, retry).
- HTTPException: réponse JSON FastAPI standard {"detail"}.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from storefront.payments.errors import CheckoutError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CheckoutError)
    async def checkout_error_handler(request: Request, exc: CheckoutError):
        if exc.status_code >= 500:
            logger.warning("checkout error path=%s code=%s detail=%s", request.url.path, exc.code, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))
