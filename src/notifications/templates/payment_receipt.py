"""Payment receipt template — sent when an order is paid."""


class PaymentReceiptTemplate:
    event_type = "order.paid"

    @staticmethod
    def render(context: dict) -> dict:
        order_id = context.get("order_id", "N/A")
        total_amount = context.get("total_amount", 0.0)
        currency = context.get("currency", "USD")
        payment_id = context.get("payment_id", "N/A")
        return {
            "subject": f"Payment received for order #{order_id}",
            "body": (
                f"Thank you! We received {currency} {total_amount:.2f} for order #{order_id}.\n\n"
                f"Payment reference: {payment_id}"
            ),
        }
