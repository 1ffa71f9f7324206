"""Order cancellation template — sent when an order is cancelled."""


class OrderCancellationTemplate:
    event_type = "order.cancelled"

    @staticmethod
    def render(context: dict) -> dict:
        order_id = context.get("order_id", "N/A")
        reason = context.get("reason") or "No reason given"
        return {
            "subject": f"Order #{order_id} cancelled",
            "body": f"Your order #{order_id} has been cancelled.\n\nReason: {reason}",
        }
