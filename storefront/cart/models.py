"""
Modèles du panier côté client (immuables).
- CartLineItem: une ligne par produit (clé "id" sur le fil JSON).
- CartState: lignes (ordre d'insertion), panneau ouvert/fermé, intent courant, phase du checkout.
"""
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class CheckoutPhase(str, Enum):
    cart = "cart"
    checkout = "checkout"
    success = "success"


class CartLineItem(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    product_id: str = Field(alias="id", min_length=1)
    name: str
    unit_amount: Optional[int] = None
    quantity: int = Field(default=1, ge=1)
    image: Optional[str] = None
    description: Optional[str] = None


class CartState(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: Tuple[CartLineItem, ...] = ()
    is_open: bool = False
    payment_intent_id: str = ""
    phase: CheckoutPhase = CheckoutPhase.cart

    def find(self, product_id: str) -> Optional[CartLineItem]:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def quantity_of(self, product_id: str) -> int:
        item = self.find(product_id)
        return item.quantity if item else 0
