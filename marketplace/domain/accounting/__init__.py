from marketplace.domain.accounting.reports import generate_finance_report

__all__ = ["generate_finance_report"]
