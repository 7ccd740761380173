"""Mock email sender for testing and development."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

import structlog

from restock_service.infrastructure.email.base import SendResult

logger = structlog.get_logger()


class MockEmailSender:
    """
    Mock email service for testing and development.

    Stores sent emails to the filesystem for inspection instead of
    actually sending them.
    """

    def __init__(
        self,
        storage_path: str | None = None,
        from_email: str = "alerts@restock-notifier.dev",
        from_name: str = "Restock Alert",
    ):
        """
        Initialize the mock email sender.

        Args:
            storage_path: Directory to store mock emails.
                         Defaults to /tmp/restock_mock_emails
            from_email: Sender email address
            from_name: Sender display name
        """
        self.storage_path = Path(storage_path or "/tmp/restock_mock_emails")
        self.storage_path.mkdir(parents=True, exist_ok=True)
        self.from_email = from_email
        self.from_name = from_name
        self.sent_emails: list[dict[str, Any]] = []

    async def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> SendResult:
        """Record the email in memory and on disk instead of sending it."""
        message_id = str(uuid4())
        timestamp = datetime.now(timezone.utc)

        email_record = {
            "message_id": message_id,
            "to_email": to,
            "from_email": self.from_email,
            "from_name": self.from_name,
            "subject": subject,
            "html_body": html_body,
            "text_body": text_body,
            "sent_at": timestamp.isoformat(),
        }
        self.sent_emails.append(email_record)

        filename = f"{timestamp.strftime('%Y%m%d_%H%M%S')}_{message_id}.json"
        filepath = self.storage_path / filename
        with open(filepath, "w") as f:
            json.dump(email_record, f, indent=2)

        logger.info(
            "Mock email sent",
            message_id=message_id,
            to_email=to,
            subject=subject,
            stored_at=str(filepath),
        )
        return SendResult(success=True, message_id=message_id)

    def get_sent_emails(self, to_email: str | None = None) -> list[dict[str, Any]]:
        """Emails sent through this instance, optionally filtered by recipient."""
        if to_email:
            return [e for e in self.sent_emails if e["to_email"] == to_email]
        return list(self.sent_emails)

    def clear_stored_emails(self) -> int:
        """Delete stored mock emails. Returns the number removed."""
        count = 0
        for filepath in self.storage_path.glob("*.json"):
            filepath.unlink()
            count += 1

        self.sent_emails.clear()
        logger.info("Cleared mock emails", count=count)
        return count
