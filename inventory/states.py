from common.states import StateMachine
from inventory.models import PurchaseOrder

Status = PurchaseOrder.Status

PURCHASE_ORDER_STATES = StateMachine(
    "purchase order",
    {
        "update": ({Status.DRAFT, Status.PENDING}, None),
        "submit": ({Status.DRAFT}, Status.PENDING),
        "approve": ({Status.DRAFT, Status.PENDING}, Status.APPROVED),
        "place": ({Status.APPROVED}, Status.ORDERED),
        "receive": ({Status.APPROVED, Status.ORDERED}, None),
        "cancel": ({Status.DRAFT, Status.PENDING, Status.APPROVED}, Status.CANCELLED),
    },
)
