"""
Taxonomie d'erreurs du flux panier / payment intent / commande.
Chaque erreur porte son code HTTP et un code machine stable ("code") que le client
du panier utilise pour décider: redemander l'auth, redémarrer le checkout, réessayer.
"""


class CheckoutError(Exception):
    status_code = 400
    code = "checkout_error"
    default_detail = "Erreur de checkout"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class Unauthorized(CheckoutError):
    status_code = 401
    code = "unauthorized"
    default_detail = "Non authentifié"


class InvalidCart(CheckoutError):
    status_code = 400
    code = "invalid_cart"
    default_detail = "Panier invalide"


class IntentNotFound(CheckoutError):
    """Référence Stripe périmée ou invalide: le client doit redémarrer sans identifiant."""
    status_code = 404
    code = "intent_not_found"
    default_detail = "Payment intent introuvable ou inutilisable"


class OrderNotFound(CheckoutError):
    """Intent Stripe valide sans commande associée: incohérence, jamais réparée automatiquement."""
    status_code = 404
    code = "order_not_found"
    default_detail = "Aucune commande pour ce payment intent"


class OrderAlreadyComplete(CheckoutError):
    status_code = 409
    code = "order_already_complete"
    default_detail = "Commande déjà payée, modification refusée"


class ConcurrentUpdate(CheckoutError):
    status_code = 409
    code = "concurrent_update"
    default_detail = "Mise à jour concurrente en cours, réessayer"


class InvalidSignature(CheckoutError):
    status_code = 400
    code = "invalid_signature"
    default_detail = "Invalid Stripe webhook payload"


class ProcessorUnavailable(CheckoutError):
    status_code = 503
    code = "processor_unavailable"
    default_detail = "Stripe indisponible, réessayer plus tard"


class StoreUnavailable(CheckoutError):
    status_code = 503
    code = "store_unavailable"
    default_detail = "Base de données indisponible, réessayer plus tard"


# Erreurs transitoires: un nouvel essai (avec backoff) est sûr
RETRYABLE = (ProcessorUnavailable, StoreUnavailable, ConcurrentUpdate)

ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        Unauthorized,
        InvalidCart,
        IntentNotFound,
        OrderNotFound,
        OrderAlreadyComplete,
        ConcurrentUpdate,
        InvalidSignature,
        ProcessorUnavailable,
        StoreUnavailable,
    )
}
