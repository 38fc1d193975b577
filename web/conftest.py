import pytest

from apps.checkout.domain import OrderItem, PaymentContext


@pytest.fixture(autouse=True)
def use_stubs_for_tests(settings):
    settings.USE_HTTP_ADAPTERS = False


@pytest.fixture(autouse=True)
def reset_throttle_cache():
    # throttling counters live in the local-memory cache
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def cart_items():
    return [
        OrderItem(sku="MUG-01", name="Taza cerámica", quantity=2, unit_price_cents=1250),
        OrderItem(sku="TEA-07", name="Té verde", quantity=1, unit_price_cents=890),
    ]


@pytest.fixture
def payment_ctx():
    return PaymentContext(
        client_secret="pi_123_secret_abc",
        payment_method="pm_card_visa",
        auth_token="jwt-token",
    )


class RecordingSleep:
    """Async sleep replacement that records requested delays (seconds)."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
