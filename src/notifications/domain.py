"""Notifications bounded context — multi-channel delivery of customer messages.

Consumes user, order and payment events and delivers email, SMS, push and
merchant webhook notifications, tracking each delivery for audit and retry.
"""

import structlog
from protean.domain import Domain

notifications = Domain(name="notifications")

logger = structlog.get_logger(__name__)
