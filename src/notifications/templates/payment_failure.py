"""Payment failure template — sent when a charge is declined."""


class PaymentFailureTemplate:
    event_type = "payment.failed"

    @staticmethod
    def render(context: dict) -> dict:
        order_id = context.get("order_id", "N/A")
        reason = context.get("reason") or "The payment was declined"
        if context.get("can_retry"):
            followup = "We will try again shortly; no action is needed yet."
        else:
            followup = "Please update your payment method to complete the order."
        return {
            "subject": f"Payment problem with order #{order_id}",
            "body": f"We could not charge your payment for order #{order_id}.\n\nReason: {reason}\n\n{followup}",
        }
