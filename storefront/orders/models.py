# module storefront.orders.models
"""Modèles des commandes persistées (tables orders / order_products).
- Order: une commande par payment intent (payment_intent_id unique), créée 'pending'.
- OrderProduct: ligne de commande figée au moment de la réconciliation.
- product_rows(): conversion des lignes de panier soumises en lignes order_products.
"""
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    pending = "pending"
    complete = "complete"


class OrderProduct(BaseModel):
    name: str
    description: Optional[str] = None
    unit_amount: int
    image: Optional[str] = None
    quantity: int


class Order(BaseModel):
    id: Any
    user_id: str
    amount: int
    currency: str
    status: OrderStatus
    created_at: Optional[str] = None
    payment_intent_id: Optional[str] = None
    products: List[OrderProduct] = Field(default_factory=list)


def product_rows(items: Iterable[Any]) -> List[Dict[str, Any]]:
    """Lignes order_products (sans order_id) à partir des lignes de panier validées."""
    return [
        {
            "name": item.name,
            "description": item.description or None,
            "unit_amount": int(item.unit_amount),
            "image": item.image,
            "quantity": int(item.quantity),
        }
        for item in items
    ]


def same_products(current: Iterable[Dict[str, Any]], wanted: Iterable[Dict[str, Any]]) -> bool:
    """Compare deux jeux de lignes (ordre compris) sur les champs persistés."""
    keys = ("name", "description", "unit_amount", "image", "quantity")

    def _norm(rows):
        return [tuple(row.get(k) for k in keys) for row in rows]

    return _norm(current) == _norm(wanted)
