"""Outbound mail capability."""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class EmailMessage:
    """A rendered email ready to hand to a sender."""

    subject: str
    html_body: str
    text_body: str


@dataclass(frozen=True)
class SendResult:
    """Outcome of a single send attempt."""

    success: bool
    message_id: str | None = None
    error: str | None = None


class EmailSender(Protocol):
    """Anything that can deliver an email.

    Implementations may return ``SendResult(success=False)`` or raise
    ``TransientDependencyError``; callers treat both the same way.
    """

    async def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> SendResult: ...
