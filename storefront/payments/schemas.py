from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class CheckoutItem(BaseModel):
    """Ligne du panier telle que soumise par le client (clé "id" = produit)."""
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="id", min_length=1)
    name: str
    unit_amount: Optional[int] = Field(default=None, ge=0)
    quantity: int = Field(default=1, ge=1)
    image: Optional[str] = None
    description: Optional[str] = None


class CheckoutRequest(BaseModel):
    items: List[CheckoutItem] = Field(default_factory=list)
    payment_intent_id: Optional[str] = None
    # Total éventuellement envoyé par le front: accepté mais jamais utilisé pour facturer
    total: Optional[int] = None


class CheckoutResponse(BaseModel):
    paymentIntent: Dict[str, Any]
    order: Dict[str, Any]


class WebhookAck(BaseModel):
    received: bool = True
