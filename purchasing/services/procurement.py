"""
Procurement service.

Ce module expose la surface publique des flux d'achat (PO, facture,
retours, prix) utilisée par la couche API. Il ne contient AUCUNE logique
de stock.

Toute la logique stock est centralisée dans :
    purchasing.services.ledger
"""

from purchasing.services.orders import (
    create_order,
    edit_order,
    set_status,
    approve_order,
    complete_order,
    get_order,
    list_orders,
)
from purchasing.services.invoices import register_invoice, list_invoices, get_invoice
from purchasing.services.returns import (
    create_return,
    returnable_quantities,
    list_returns,
    get_return,
)
from purchasing.services.prices import (
    record_price,
    correct_price,
    delete_price,
    price_history,
    resolve_current_price,
)
from purchasing.services.catalog import resolve_catalog_items, product_inventory
from purchasing.services.ledger import list_balances, list_supplier_inventory

__all__ = [
    "create_order",
    "edit_order",
    "set_status",
    "approve_order",
    "complete_order",
    "get_order",
    "list_orders",
    "register_invoice",
    "list_invoices",
    "get_invoice",
    "create_return",
    "returnable_quantities",
    "list_returns",
    "get_return",
    "record_price",
    "correct_price",
    "delete_price",
    "price_history",
    "resolve_current_price",
    "resolve_catalog_items",
    "product_inventory",
    "list_balances",
    "list_supplier_inventory",
]
