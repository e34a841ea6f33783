"""Sample data generators."""

from payment_ledger.generators.loan_book import (
    LoanBookGenerator,
    PaymentMix,
    PaymentPattern,
    build_schedule,
)

__all__ = ["LoanBookGenerator", "PaymentMix", "PaymentPattern", "build_schedule"]
