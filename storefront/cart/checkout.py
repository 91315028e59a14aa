"""
Client asynchrone du checkout: synchronise le panier local avec le payment intent serveur.

Flux (équivalent du composant Checkout du front):
  1) POST {items, payment_intent_id} vers /api/v1/payments/create-payment-intent
  2) mémorise l'id de l'intent renvoyé dans le CartStore et passe en phase "checkout"
  3) intent périmé (404 intent_not_found): on oublie l'id et on recommence une seule fois sans id
  4) erreurs transitoires (503, timeout, 409 concurrent_update): nouvel essai avec backoff exponentiel,
     uniquement pour la mise à jour d'un intent existant (une création n'est jamais rejouée)
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from storefront.config import CHECKOUT_API_URL
from storefront.payments.errors import (
    CheckoutError,
    ERRORS_BY_CODE,
    IntentNotFound,
    InvalidCart,
    ProcessorUnavailable,
    RETRYABLE,
    Unauthorized,
)
from .models import CartState, CheckoutPhase
from .store import CartStore

logger = logging.getLogger(__name__)

CHECKOUT_PATH = "/api/v1/payments/create-payment-intent"


def error_from_response(response: httpx.Response) -> CheckoutError:
    """Reconstruit l'erreur typée à partir du corps {"detail", "code"} renvoyé par l'API."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    detail = str(body.get("detail") or response.reason_phrase or "")
    cls = ERRORS_BY_CODE.get(str(body.get("code") or ""))
    if cls is not None:
        return cls(detail)
    if response.status_code == 401:
        return Unauthorized(detail)
    if response.status_code >= 500:
        return ProcessorUnavailable(detail)
    err = CheckoutError(detail)
    err.status_code = response.status_code
    return err


class CheckoutClient:
    def __init__(
        self,
        base_url: str = CHECKOUT_API_URL,
        *,
        access_token: Optional[str] = None,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "CheckoutClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @staticmethod
    def _payload(state: CartState) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "items": [item.model_dump(mode="json", by_alias=True) for item in state.items],
        }
        if state.payment_intent_id:
            payload["payment_intent_id"] = state.payment_intent_id
        return payload

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST du panier.
        Sans payment_intent_id la requête crée un intent et une commande: une réponse perdue
        ne dit pas si le serveur a validé, donc aucun nouvel essai (ProcessorUnavailable tout de suite).
        Avec payment_intent_id la mise à jour converge: nouvel essai avec backoff.
        """
        attempts = self.max_retries + 1 if payload.get("payment_intent_id") else 1
        last_error: CheckoutError = ProcessorUnavailable()
        for attempt in range(attempts):
            if attempt:
                await asyncio.sleep(self.backoff_seconds * (2 ** (attempt - 1)))
            try:
                response = await self._http.post(CHECKOUT_PATH, json=payload)
            except httpx.TransportError as e:
                logger.warning("cart.checkout transport error attempt=%s error=%s", attempt + 1, e)
                last_error = ProcessorUnavailable(str(e) or None)
                continue
            if response.status_code == 200:
                return response.json()
            last_error = error_from_response(response)
            if not isinstance(last_error, RETRYABLE):
                raise last_error
            logger.info("cart.checkout retryable status=%s code=%s attempt=%s", response.status_code, last_error.code, attempt + 1)
        raise last_error

    async def sync(self, store: CartStore) -> Dict[str, Any]:
        """
        Crée ou met à jour l'intent correspondant au panier courant.
        Retourne le payload serveur {paymentIntent, order}.
        """
        state = store.state
        if not state.items:
            raise InvalidCart("Panier vide")
        try:
            data = await self._post(self._payload(state))
        except IntentNotFound:
            if not state.payment_intent_id:
                raise
            logger.info("cart.checkout stale intent=%s, restarting checkout", state.payment_intent_id)
            store.set_intent_id("")
            data = await self._post(self._payload(store.state))
        intent = data.get("paymentIntent") or {}
        store.set_intent_id(str(intent.get("id") or ""))
        store.set_phase(CheckoutPhase.checkout)
        return data
