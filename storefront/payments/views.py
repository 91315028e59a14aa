import logging
from typing import Any, Dict

from fastapi import APIRouter, Request, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from storefront.utils.security import require_user
from storefront.utils.rate_limit import optional_rate_limit
from storefront.payments import stripe_client
from storefront.payments import service as payments_service
from storefront.payments.schemas import CheckoutRequest, CheckoutResponse, WebhookAck

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])


# module storefront.payments.views
@router.post(
    "/create-payment-intent",
    response_model=CheckoutResponse,
    dependencies=[Depends(optional_rate_limit(times=10, seconds=60))],
)
def create_payment_intent(body: CheckoutRequest, user: Dict[str, Any] = Depends(require_user)):
    """
    Crée ou met à jour le payment intent du panier de l'utilisateur authentifié.
    - Entrée JSON: { "items": [ {id, name, unit_amount, quantity, image?, description?}, ... ],
                     "payment_intent_id": "<pi_...>" (optionnel) }
    - Sécurité: require_user + rate limit (10 req / 60s)
    - Délègue à payments_service.reconcile_checkout (montant recalculé côté serveur)
    - Erreurs: 400 panier invalide, 401, 404 intent/commande incohérents, 409, 503
    """
    return payments_service.reconcile_checkout(
        user=user,
        items=body.items,
        payment_intent_id=body.payment_intent_id,
    )


@router.post("/webhook", include_in_schema=False, response_model=WebhookAck)
async def webhook_stripe(request: Request):
    """
    Webhook Stripe: consomme charge.succeeded pour passer la commande en 'complete'.
    - Lit le corps brut (la signature couvre les octets exacts) + en-tête Stripe-Signature
    - Signature invalide => 400 (Stripe redélivre selon sa propre politique)
    - Tout événement vérifié, même ignoré => 200 {"received": true}
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    event = stripe_client.verify_event(payload, signature)
    result = await run_in_threadpool(payments_service.handle_event, event)
    return JSONResponse(result)
