"""Order confirmation template — sent when an order is created."""


class OrderConfirmationTemplate:
    event_type = "order.created"

    @staticmethod
    def render(context: dict) -> dict:
        order_id = context.get("order_id", "N/A")
        total_amount = context.get("total_amount", 0.0)
        currency = context.get("currency", "USD")
        item_count = len(context.get("items") or [])
        return {
            "subject": f"Order #{order_id} received",
            "body": (
                f"We received your order #{order_id} ({item_count} item(s)).\n\n"
                f"Order Total: {currency} {total_amount:.2f}\n\n"
                "We'll let you know as soon as the payment goes through."
            ),
        }
