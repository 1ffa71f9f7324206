"""Ordering bounded context — order placement and payment tracking.

Places orders, announces them with ``order.created`` and follows the
``payment.*`` events to move each order to paid, failed or retrying.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
