"""Provider registry — one notification provider per channel.

The registry is built at startup and injected into the use cases, so tests
construct their own with fake providers.
"""

from notifications.channel.fake import (
    FakeEmailProvider,
    FakePushProvider,
    FakeSmsProvider,
    FakeWebhookProvider,
)
from notifications.channel.port import NotificationProvider
from shared.errors import ProviderError


class ProviderRegistry:
    def __init__(self, providers=()) -> None:
        self._providers: dict[str, NotificationProvider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: NotificationProvider) -> None:
        self._providers[provider.channel] = provider

    def has(self, channel: str) -> bool:
        return channel in self._providers

    @property
    def channels(self) -> list[str]:
        return sorted(self._providers)

    def get(self, channel: str) -> NotificationProvider:
        """Return the available provider for ``channel``; raises ``ProviderError``."""
        provider = self._providers.get(channel)
        if provider is None:
            raise ProviderError(f"No provider registered for channel {channel!r}")
        if not provider.is_available():
            raise ProviderError(f"Provider {provider.name} for channel {channel!r} is not available")
        return provider


def fake_registry() -> ProviderRegistry:
    """Registry with an in-memory provider for every channel."""
    return ProviderRegistry(
        [FakeEmailProvider(), FakeSmsProvider(), FakePushProvider(), FakeWebhookProvider()]
    )
