from marketplace.domain.wallet.escrow import EscrowStatus, escrow_status, order_escrow
from marketplace.domain.wallet.ledger import (
    BalanceStatus,
    TransactionType,
    credit_pending_sales,
    ledger_balance,
    list_ledger_entries,
    process_payout,
    release_shipment_funds,
    reverse_shipment_funds,
    wallet_snapshot,
)

__all__ = [
    "BalanceStatus",
    "EscrowStatus",
    "TransactionType",
    "credit_pending_sales",
    "escrow_status",
    "ledger_balance",
    "list_ledger_entries",
    "order_escrow",
    "process_payout",
    "release_shipment_funds",
    "reverse_shipment_funds",
    "wallet_snapshot",
]
