"""Template registry — maps event types to customer-facing templates.

Each template knows how to render a subject and body from the event
payload.
"""

from notifications.templates.order_cancellation import OrderCancellationTemplate
from notifications.templates.order_confirmation import OrderConfirmationTemplate
from notifications.templates.payment_failure import PaymentFailureTemplate
from notifications.templates.payment_receipt import PaymentReceiptTemplate
from notifications.templates.welcome import WelcomeTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    template.event_type: template
    for template in (
        WelcomeTemplate,
        OrderConfirmationTemplate,
        PaymentReceiptTemplate,
        OrderCancellationTemplate,
        PaymentFailureTemplate,
    )
}


def get_template(event_type: str):
    """Look up a template class by event type."""
    template_cls = TEMPLATE_REGISTRY.get(event_type)
    if template_cls is None:
        raise ValueError(f"No template registered for event type: {event_type}")
    return template_cls
