"""Merchant webhook template — JSON body posted to a merchant's endpoint."""

import json


class MerchantWebhookTemplate:
    @staticmethod
    def render(context: dict) -> dict:
        event_type = context.get("event_type", "unknown")
        return {
            "subject": f"Webhook: {event_type}",
            "body": json.dumps({"event": event_type, "data": context.get("data", {})}, default=str),
        }
