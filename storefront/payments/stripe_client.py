"""
Adaptateur Stripe: centralise les appels PaymentIntent et la vérification des webhooks.
- Tous les appels réseau sont bornés (timeout HTTP + nombre de retries SDK).
- Les erreurs SDK sont traduites dans la taxonomie storefront.payments.errors.
"""
import json
import logging
from typing import Any, Dict, Optional

import stripe

from storefront.config import (
    STRIPE_SECRET_KEY,
    STRIPE_TIMEOUT_SECONDS,
    STRIPE_MAX_NETWORK_RETRIES,
    STRIPE_WEBHOOK_SECRET,
    CURRENCY,
)
from .errors import IntentNotFound, InvalidCart, InvalidSignature, ProcessorUnavailable

logger = logging.getLogger(__name__)

# Statuts Stripe pour lesquels l'intent ne peut plus suivre le panier
UNUSABLE_INTENT_STATUSES = {"canceled", "succeeded"}

_TRANSIENT_ERRORS = (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)

_http_client = None


# module storefront.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY si disponible.
    - Installe un client HTTP avec timeout (une seule fois) et le nombre de retries réseau.
    """
    global _http_client
    if STRIPE_SECRET_KEY:
        stripe.api_key = STRIPE_SECRET_KEY
    stripe.max_network_retries = STRIPE_MAX_NETWORK_RETRIES
    if _http_client is None:
        _http_client = stripe.RequestsClient(timeout=STRIPE_TIMEOUT_SECONDS)
        stripe.default_http_client = _http_client
    return stripe


def intent_to_dict(intent: Any) -> Dict[str, Any]:
    """Vue sérialisable d'un PaymentIntent (seuls les champs utiles au client)."""
    return {
        "id": getattr(intent, "id", None),
        "amount": getattr(intent, "amount", None),
        "currency": getattr(intent, "currency", None),
        "status": getattr(intent, "status", None),
        "client_secret": getattr(intent, "client_secret", None),
    }


def create_payment_intent(*, amount: int, user_id: str, currency: str = CURRENCY) -> Dict[str, Any]:
    """
    Crée un PaymentIntent pour le montant (centimes) calculé côté serveur.
    - automatic_payment_methods activé
    - metadata.user_id pour rattacher l'intent au propriétaire
    """
    require_stripe()
    try:
        intent = stripe.PaymentIntent.create(
            amount=amount,
            currency=currency,
            automatic_payment_methods={"enabled": True},
            metadata={"user_id": user_id},
        )
    except stripe.InvalidRequestError as e:
        logger.warning("payments.stripe create rejected amount=%s error=%s", amount, e)
        raise InvalidCart(getattr(e, "user_message", None) or "Montant refusé par Stripe")
    except _TRANSIENT_ERRORS as e:
        logger.warning("payments.stripe create unavailable error=%s", e)
        raise ProcessorUnavailable()
    return intent_to_dict(intent)


def retrieve_payment_intent(payment_intent_id: str) -> Dict[str, Any]:
    """
    Relit un PaymentIntent existant.
    - resource_missing => IntentNotFound
    - statut canceled/succeeded => IntentNotFound (l'intent ne peut plus suivre le panier)
    """
    require_stripe()
    try:
        intent = stripe.PaymentIntent.retrieve(payment_intent_id)
    except stripe.InvalidRequestError as e:
        logger.info("payments.stripe retrieve failed intent=%s code=%s", payment_intent_id, getattr(e, "code", None))
        raise IntentNotFound()
    except _TRANSIENT_ERRORS as e:
        logger.warning("payments.stripe retrieve unavailable intent=%s error=%s", payment_intent_id, e)
        raise ProcessorUnavailable()
    data = intent_to_dict(intent)
    if data.get("status") in UNUSABLE_INTENT_STATUSES:
        raise IntentNotFound(f"Payment intent {data.get('status')}")
    return data


def update_payment_intent_amount(payment_intent_id: str, amount: int) -> Dict[str, Any]:
    """Aligne le montant de l'intent sur le total recalculé."""
    require_stripe()
    try:
        intent = stripe.PaymentIntent.modify(payment_intent_id, amount=amount)
    except stripe.InvalidRequestError as e:
        logger.info("payments.stripe update failed intent=%s code=%s", payment_intent_id, getattr(e, "code", None))
        raise IntentNotFound()
    except _TRANSIENT_ERRORS as e:
        logger.warning("payments.stripe update unavailable intent=%s error=%s", payment_intent_id, e)
        raise ProcessorUnavailable()
    return intent_to_dict(intent)


def cancel_payment_intent(payment_intent_id: str) -> Dict[str, Any]:
    """Annule un intent devenu orphelin (commande non enregistrée)."""
    require_stripe()
    try:
        intent = stripe.PaymentIntent.cancel(payment_intent_id)
    except stripe.InvalidRequestError as e:
        logger.info("payments.stripe cancel failed intent=%s code=%s", payment_intent_id, getattr(e, "code", None))
        raise IntentNotFound()
    except _TRANSIENT_ERRORS as e:
        logger.warning("payments.stripe cancel unavailable intent=%s error=%s", payment_intent_id, e)
        raise ProcessorUnavailable()
    return intent_to_dict(intent)


def verify_event(payload: bytes, signature: Optional[str], secret: Optional[str] = None) -> Dict[str, Any]:
    """
    Valide un événement Stripe signé (webhook) et le retourne sous forme de dict.
    - payload: corps brut, non parsé (la signature couvre les octets exacts)
    - signature: en-tête Stripe-Signature
    - secret: STRIPE_WEBHOOK_SECRET par défaut
    Toute anomalie (en-tête absent, signature/horodatage invalide, JSON malformé) => InvalidSignature.
    """
    secret = STRIPE_WEBHOOK_SECRET if secret is None else secret
    if not signature:
        raise InvalidSignature("Missing the stripe signature")
    if not secret:
        logger.error("payments.webhook STRIPE_WEBHOOK_SECRET manquant")
        raise InvalidSignature()
    try:
        text = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(text, signature, secret, stripe.Webhook.DEFAULT_TOLERANCE)
        event = json.loads(text)
    except (stripe.SignatureVerificationError, UnicodeDecodeError, ValueError) as e:
        logger.warning("payments.webhook signature rejected error=%s", e)
        raise InvalidSignature()
    if not isinstance(event, dict) or not event.get("type"):
        raise InvalidSignature()
    return event
