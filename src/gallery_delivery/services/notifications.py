"""Best-effort email notifications for order lifecycle events."""

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


class EmailClient(Protocol):
    """Interface for a transactional email API."""

    async def send_email(
        self, to: str, subject: str, text: str, html: str | None = None
    ) -> None:
        """Send a single email."""


@dataclass(frozen=True)
class EmailTemplate:
    """Rendered email content."""

    subject: str
    text: str
    html: str | None = None


def selection_approved_email(  # noqa: PLR0913
    gallery_id: str,
    client_id: str,
    selected_count: int,
    overage_count: int,
    overage_cents: int,
    order_id: str,
    currency: str,
) -> EmailTemplate:
    amount = f"{overage_cents / 100:.2f} {currency}"
    return EmailTemplate(
        subject=f"Selections approved - Gallery {gallery_id} - Order {order_id}",
        text=(
            f"Client {client_id} approved selections for gallery {gallery_id}.\n\n"
            f"Selected: {selected_count} photos\n"
            f"Overage: {overage_count} photos ({amount})\n"
            f"Order ID: {order_id}\n\n"
            "Process the order and upload final photos."
        ),
        html=(
            "<h2>Selections Approved</h2>"
            f"<p>Client <strong>{client_id}</strong> approved selections for "
            f"gallery <strong>{gallery_id}</strong>.</p>"
            f"<ul><li>Selected: <strong>{selected_count}</strong> photos</li>"
            f"<li>Overage: <strong>{overage_count}</strong> photos "
            f"(<strong>{amount}</strong>)</li>"
            f"<li>Order ID: <strong>{order_id}</strong></li></ul>"
            "<p>Process the order and upload final photos.</p>"
        ),
    )


def change_request_email(gallery_id: str, client_id: str) -> EmailTemplate:
    return EmailTemplate(
        subject=f"Change request - Gallery {gallery_id}",
        text=(
            f"Client {client_id} has requested changes to their selection for "
            f"gallery {gallery_id}.\n\n"
            "Please review and approve the change request in your dashboard."
        ),
    )


def change_request_approved_email(gallery_name: str) -> EmailTemplate:
    return EmailTemplate(
        subject=f"You can update your selection: {gallery_name}",
        text=(
            f"Hello,\n\nYour change request for {gallery_name} was approved. "
            "You can now update your photo selection."
        ),
    )


def change_request_denied_email(
    gallery_name: str, reason: str | None
) -> EmailTemplate:
    text = (
        f"Hello,\n\nYour change request for {gallery_name} could not be accepted. "
        "Your previous selection remains in place."
    )
    if reason:
        text += f"\n\nReason: {reason}"
    return EmailTemplate(
        subject=f"Change request update: {gallery_name}",
        text=text,
    )


@dataclass
class NotificationService:
    """Sends lifecycle emails; failures are logged and never raised."""

    client: EmailClient | None
    currency: str = "PLN"

    async def send(self, to: str | None, template: EmailTemplate) -> bool:
        """Send a rendered template, returning whether it was delivered."""
        if self.client is None or not to:
            logger.info(
                "Skipping notification",
                extra={"subject": template.subject, "has_recipient": bool(to)},
            )
            return False
        try:
            await self.client.send_email(
                to=to, subject=template.subject, text=template.text, html=template.html
            )
        except Exception:
            logger.exception(
                "Notification send failed", extra={"subject": template.subject}
            )
            return False
        logger.info("Notification sent", extra={"subject": template.subject})
        return True

    async def selection_approved(  # noqa: PLR0913
        self,
        to: str | None,
        gallery_id: str,
        client_id: str,
        order_id: str,
        selected_count: int,
        overage_count: int,
        overage_cents: int,
    ) -> bool:
        """Notify the photographer that a client approved a selection."""
        template = selection_approved_email(
            gallery_id=gallery_id,
            client_id=client_id,
            selected_count=selected_count,
            overage_count=overage_count,
            overage_cents=overage_cents,
            order_id=order_id,
            currency=self.currency,
        )
        return await self.send(to, template)

    async def change_requested(
        self, to: str | None, gallery_id: str, client_id: str
    ) -> bool:
        """Notify the photographer about a change request."""
        return await self.send(to, change_request_email(gallery_id, client_id))

    async def change_request_approved(self, to: str | None, gallery_name: str) -> bool:
        """Tell the client they can edit their selection again."""
        return await self.send(to, change_request_approved_email(gallery_name))

    async def change_request_denied(
        self, to: str | None, gallery_name: str, reason: str | None
    ) -> bool:
        """Tell the client their change request was denied."""
        return await self.send(to, change_request_denied_email(gallery_name, reason))
