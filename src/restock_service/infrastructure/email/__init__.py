"""Email transport adapters."""

from restock_service.config import Settings, get_settings
from restock_service.infrastructure.email.base import EmailMessage, EmailSender, SendResult
from restock_service.infrastructure.email.mock import MockEmailSender
from restock_service.infrastructure.email.resend import ResendEmailSender

_sender: EmailSender | None = None


def build_email_sender(settings: Settings) -> EmailSender:
    """Build the sender selected by ``settings.email_service``."""
    if settings.email_service == "resend":
        return ResendEmailSender(
            api_key=settings.resend_api_key,
            from_email=settings.email_from_address,
            from_name=settings.email_from_name,
            api_url=settings.resend_api_url,
            timeout=settings.email_send_timeout_seconds,
        )
    return MockEmailSender(
        storage_path=settings.mock_email_storage_path,
        from_email=settings.email_from_address,
        from_name=settings.email_from_name,
    )


def get_email_sender() -> EmailSender:
    """Get the singleton email sender for the application."""
    global _sender
    if _sender is None:
        _sender = build_email_sender(get_settings())
    return _sender


__all__ = [
    "EmailMessage",
    "EmailSender",
    "MockEmailSender",
    "ResendEmailSender",
    "SendResult",
    "build_email_sender",
    "get_email_sender",
]
