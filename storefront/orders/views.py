# module storefront.orders.views

"""Endpoints de consultation des commandes.
- GET /api/v1/orders: commandes de l'utilisateur connecté (plus récentes d'abord), produits inclus.
Sécurité:
- require_user: une commande n'est jamais lue que par son propriétaire.
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from storefront.utils.security import require_user
from storefront.payments import service as payments_service
from storefront.orders.models import Order

router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])


@router.get("", response_model=List[Order])
def list_my_orders(user: Dict[str, Any] = Depends(require_user)):
    return payments_service.list_orders(user)
