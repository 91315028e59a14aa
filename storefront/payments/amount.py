"""
Calcul du montant d'une commande (pur, en unités mineures entières).
Utilisé côté client (affichage du total du panier) et côté serveur (montant facturé).
"""
from typing import Any, Iterable


class UnpricedItemError(ValueError):
    """Ligne sans unit_amount: elle ne doit pas entrer dans un panier facturable."""


# module storefront.payments.amount
def calc_amount(items: Iterable[Any]) -> int:
    """
    Somme unit_amount * quantity sur toutes les lignes.
    - Lignes: objets exposant .unit_amount et .quantity (CartLineItem, CheckoutItem).
    - unit_amount None => UnpricedItemError (jamais converti silencieusement en 0).
    - Aucun flottant: montants en centimes (int) de bout en bout.
    """
    total = 0
    for item in items:
        if item.unit_amount is None:
            raise UnpricedItemError(f"Prix manquant pour l'article {getattr(item, 'name', '') or '?'}")
        total += int(item.unit_amount) * int(item.quantity)
    return total
