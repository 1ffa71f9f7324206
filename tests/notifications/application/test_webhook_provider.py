"""HTTP delivery of webhook notifications, against a stubbed requests session."""

import pytest
import requests
from notifications.channel.webhook import HttpWebhookProvider
from notifications.notification.notification import Notification


class StubResponse:
    def __init__(self, status_code=200, headers=None):
        self.status_code = status_code
        self.headers = headers or {}

    @property
    def ok(self):
        return self.status_code < 400


class StubSession:
    def __init__(self, response=None, error=None):
        self.response = response or StubResponse()
        self.error = error
        self.posts = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def notification():
    return Notification.create(
        correlation_id="corr-1-webhook",
        event_type="order.created",
        channel="webhook",
        recipient_id="m-1",
        recipient_webhook_url="https://merchant.example.com/hooks",
        message='{"event": "order.created"}',
        context_data={"order_id": "o1"},
    )


class TestHttpWebhookProvider:
    def test_posts_event_to_recipient(self, notification):
        session = StubSession(StubResponse(202, {"X-Webhook-Id": "wh-77"}))
        result = HttpWebhookProvider(session=session, timeout=3).send(notification)

        assert result.success
        assert result.message_id == "wh-77"
        [post] = session.posts
        assert post["url"] == "https://merchant.example.com/hooks"
        assert post["json"]["event"] == "order.created"
        assert post["json"]["data"] == {"order_id": "o1"}
        assert post["headers"]["X-Correlation-Id"] == "corr-1-webhook"
        assert post["timeout"] == 3

    def test_http_error_is_a_failed_delivery(self, notification):
        result = HttpWebhookProvider(session=StubSession(StubResponse(503))).send(notification)
        assert not result.success
        assert result.error == "Webhook returned HTTP 503"
        assert result.metadata == {"status_code": 503}

    def test_connection_error_is_a_failed_delivery(self, notification):
        session = StubSession(error=requests.ConnectionError("connection refused"))
        result = HttpWebhookProvider(session=session).send(notification)
        assert not result.success
        assert "connection refused" in result.error

    def test_used_through_the_sender(self, store, notification):
        from notifications.channel import ProviderRegistry
        from notifications.notification.sending import NotificationSender

        session = StubSession()
        sender = NotificationSender(store, ProviderRegistry([HttpWebhookProvider(session=session)]))
        sent = sender.send(
            correlation_id=notification.correlation_id,
            event_type=notification.event_type,
            channel="webhook",
            recipient_id="m-1",
            recipient_webhook_url="https://merchant.example.com/hooks",
            message=notification.message,
        )

        assert sent.status == "sent"
        assert sent.provider_ref == "HttpWebhookProvider"
        assert len(session.posts) == 1
