"""Payments bounded context — charges orders through a payment gateway.

Consumes ``order.created`` and ``order.cancelled``, records each charge as a
Payment aggregate and announces the outcome as ``payment.*`` events.
"""

import structlog
from protean.domain import Domain

payments = Domain(name="payments")

logger = structlog.get_logger(__name__)
