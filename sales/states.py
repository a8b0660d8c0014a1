from common.states import StateMachine
from sales.models import Sale

SALE_STATES = StateMachine(
    "sale",
    {
        "void": ({Sale.Status.COMPLETED}, Sale.Status.VOID),
    },
)
