"""Email delivery through the Resend HTTP API."""

import httpx
import structlog

from restock_service.exceptions import TransientDependencyError
from restock_service.infrastructure.email.base import SendResult

logger = structlog.get_logger()


class ResendEmailSender:
    """Sends email via ``POST /emails`` on the Resend API.

    Network errors and 5xx/429 responses raise TransientDependencyError.
    Other rejections come back as an unsuccessful SendResult.
    """

    def __init__(
        self,
        api_key: str,
        from_email: str,
        from_name: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.sender = f"{from_name} <{from_email}>"
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> SendResult:
        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "html": html_body,
            "text": text_body,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            response = await self._client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise TransientDependencyError("Resend request failed", error=str(e)) from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientDependencyError(
                "Resend unavailable", status_code=response.status_code
            )

        if response.is_error:
            logger.warning(
                "Resend rejected email",
                to_email=to,
                status_code=response.status_code,
                body=response.text[:500],
            )
            return SendResult(success=False, error=f"HTTP {response.status_code}")

        # A 2xx means the email was accepted even when the body is unreadable
        try:
            message_id = response.json().get("id")
        except (ValueError, AttributeError):
            message_id = None
        logger.info("Email sent via Resend", to_email=to, message_id=message_id)
        return SendResult(success=True, message_id=message_id)

    async def aclose(self) -> None:
        await self._client.aclose()
