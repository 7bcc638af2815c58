"""Ordering bounded context: cart, checkout, orders and the stock ledger.

A single Protean domain hosts every aggregate of the checkout pipeline so
that order assembly, stock decrement and cart clearing commit in one unit
of work.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
