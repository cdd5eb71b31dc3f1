from marketplace.reconciliation.rules import (
    ReconciliationResult,
    all_passed,
    run_order_reconciliation,
    run_vendor_reconciliation,
)

__all__ = ["ReconciliationResult", "all_passed", "run_order_reconciliation", "run_vendor_reconciliation"]
