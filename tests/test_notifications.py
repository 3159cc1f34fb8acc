"""Tests for lifecycle notifications."""

import asyncio

from gallery_delivery.services.notifications import (
    NotificationService,
    change_request_denied_email,
    selection_approved_email,
)
from tests.conftest import FakeEmailClient


def test_selection_approved_template_includes_pricing() -> None:
    template = selection_approved_email(
        gallery_id="gal-1",
        client_id="client-1",
        selected_count=7,
        overage_count=2,
        overage_cents=450,
        order_id="1-1700000000000",
        currency="EUR",
    )

    assert template.subject == (
        "Selections approved - Gallery gal-1 - Order 1-1700000000000"
    )
    assert "Selected: 7 photos" in template.text
    assert "Overage: 2 photos (4.50 EUR)" in template.text
    assert template.html is not None


def test_denied_template_without_reason() -> None:
    template = change_request_denied_email("Smith Wedding", None)

    assert "Reason" not in template.text


def test_send_skips_without_client_or_recipient() -> None:
    unconfigured = NotificationService(client=None)
    client = FakeEmailClient()
    configured = NotificationService(client=client)

    skipped = asyncio.run(unconfigured.change_requested("o@example.com", "g", "c"))

    assert skipped is False
    assert asyncio.run(configured.change_requested(None, "g", "c")) is False
    assert client.sent == []


def test_send_failure_is_swallowed() -> None:
    client = FakeEmailClient(error=RuntimeError("down"))
    service = NotificationService(client=client)

    sent = asyncio.run(
        service.change_request_approved("c@example.com", "Smith Wedding")
    )

    assert sent is False


def test_send_uses_configured_currency() -> None:
    client = FakeEmailClient()
    service = NotificationService(client=client, currency="USD")

    asyncio.run(
        service.selection_approved(
            "o@example.com",
            gallery_id="g",
            client_id="c",
            order_id="1-1",
            selected_count=3,
            overage_count=1,
            overage_cents=100,
        )
    )

    assert "1.00 USD" in client.sent[0]["text"]
