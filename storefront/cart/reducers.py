"""
Transitions pures du panier: CartState -> CartState.
Aucune ne modifie l'état reçu; chacune retourne un nouvel objet (ou l'état inchangé
pour un no-op), ce qui permet aux observateurs de détecter un changement par identité.
La persistance n'est pas ici: elle est déclenchée par CartStore après la transition.
"""
from .models import CartLineItem, CartState, CheckoutPhase


def toggle(state: CartState) -> CartState:
    return state.model_copy(update={"is_open": not state.is_open})


def add_product(state: CartState, item: CartLineItem) -> CartState:
    """
    Ajoute un produit:
    - déjà présent: quantité + 1, la ligne garde sa position
    - absent: ajouté en fin de panier avec quantité 1
    """
    if state.find(item.product_id) is None:
        new_line = item.model_copy(update={"quantity": 1})
        return state.model_copy(update={"items": state.items + (new_line,)})
    items = tuple(
        line.model_copy(update={"quantity": line.quantity + 1})
        if line.product_id == item.product_id
        else line
        for line in state.items
    )
    return state.model_copy(update={"items": items})


def remove_product(state: CartState, item: CartLineItem) -> CartState:
    """
    Retire une unité d'un produit:
    - quantité > 1: décrément
    - quantité == 1: la ligne disparaît
    - absent: état inchangé
    """
    existing = state.find(item.product_id)
    if existing is None:
        return state
    if existing.quantity > 1:
        items = tuple(
            line.model_copy(update={"quantity": line.quantity - 1})
            if line.product_id == item.product_id
            else line
            for line in state.items
        )
    else:
        items = tuple(line for line in state.items if line.product_id != item.product_id)
    return state.model_copy(update={"items": items})


def clear(state: CartState) -> CartState:
    return state.model_copy(update={"items": ()})


def set_intent_id(state: CartState, payment_intent_id: str) -> CartState:
    return state.model_copy(update={"payment_intent_id": payment_intent_id or ""})


def set_phase(state: CartState, phase: CheckoutPhase) -> CartState:
    return state.model_copy(update={"phase": CheckoutPhase(phase)})


def complete_checkout(state: CartState) -> CartState:
    """Paiement confirmé: on oublie l'intent, on vide le panier et on passe en 'success'."""
    return state.model_copy(update={"items": (), "payment_intent_id": "", "phase": CheckoutPhase.success})
