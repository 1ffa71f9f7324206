"""Consumer wiring shared by the three services."""

from eventbus.connection import BrokerConnection
from eventbus.consumer import EventConsumer
from eventbus.errors import MalformedMessage
from eventbus.handlers import HandlerSet
from eventbus.settings import BrokerSettings
from eventbus.topology import QueueTopology
from shared.errors import BusinessValidationError, InvalidTransition
from shared.events.registry import parse_event

# Failures that redelivery cannot fix go straight to the dead-letter queue.
TERMINAL_ERRORS = (MalformedMessage, BusinessValidationError, InvalidTransition)


def build_consumer(
    connection: BrokerConnection,
    settings: BrokerSettings,
    queue: str,
    handlers: HandlerSet,
    domain=None,
) -> EventConsumer:
    """Consume ``queue``, bound to exactly the event types ``handlers`` covers.

    When ``domain`` is given, each handler call runs inside its domain context.
    """
    topology = QueueTopology(
        exchange=settings.exchange,
        queue=queue,
        routing_keys=handlers.routing_keys(),
    )
    return EventConsumer(
        connection,
        topology,
        handlers,
        parse_event,
        max_retries=settings.max_delivery_retries,
        terminal_errors=TERMINAL_ERRORS,
        dispatch_context=domain.domain_context if domain is not None else None,
    )
