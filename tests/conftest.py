"""Pytest configuration and fixtures."""

import asyncio
import base64
import hashlib
import hmac
from collections.abc import Callable, Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from restock_service.api.deps import get_repository
from restock_service.config import Settings, get_settings
from restock_service.exceptions import TransientDependencyError
from restock_service.infrastructure.database.connection import (
    create_session_factory,
    get_async_engine,
)
from restock_service.infrastructure.database.models import Base
from restock_service.infrastructure.database.repository import SubscriptionRepository
from restock_service.infrastructure.email import SendResult, get_email_sender
from restock_service.main import create_app

SHOPIFY_SECRET = "test-shopify-secret"
ADMIN_API_KEY = "test-admin-key"
SHOP = "test-shop.myshopify.com"


class FakeEmailSender:
    """In-memory EmailSender double.

    Recipients in ``reject`` get an unsuccessful SendResult, recipients in
    ``explode`` raise TransientDependencyError.
    """

    def __init__(
        self,
        reject: set[str] | None = None,
        explode: set[str] | None = None,
        delay: float = 0.0,
    ):
        self.reject = reject or set()
        self.explode = explode or set()
        self.delay = delay
        self.sent: list[dict[str, str]] = []
        self.attempts: list[str] = []

    async def send(self, to: str, subject: str, html_body: str, text_body: str) -> SendResult:
        self.attempts.append(to)
        # Yield so concurrent dispatches interleave
        await asyncio.sleep(self.delay)
        if to in self.explode:
            raise TransientDependencyError("SMTP connection reset", to=to)
        if to in self.reject:
            return SendResult(success=False, error="rejected")
        self.sent.append(
            {"to": to, "subject": subject, "html_body": html_body, "text_body": text_body}
        )
        return SendResult(success=True, message_id=f"msg-{len(self.sent)}")

    @property
    def recipients(self) -> list[str]:
        return [email["to"] for email in self.sent]


def shopify_hmac(body: bytes, secret: str = SHOPIFY_SECRET) -> str:
    """Sign a webhook body the way Shopify does."""
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


def app_proxy_signature(params: dict[str, str], secret: str = SHOPIFY_SECRET) -> str:
    """Sign app proxy query parameters the way Shopify does."""
    message = "".join(f"{key}={value}" for key, value in sorted(params.items()))
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


@pytest.fixture
def test_settings(tmp_path: Any) -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        database_dsn=f"sqlite+aiosqlite:///{tmp_path / 'restock.db'}",
        shopify_api_secret=SHOPIFY_SECRET,
        admin_api_key=ADMIN_API_KEY,
        app_url="https://restock.example.com",
        email_service="mock",
        mock_email_storage_path=str(tmp_path / "emails"),
        price_drop_threshold_percent=5.0,
    )


@pytest.fixture
def session_factory(test_settings: Settings) -> Generator[async_sessionmaker[AsyncSession], None, None]:
    """Session factory over a fresh SQLite file with the schema created."""
    sync_engine = create_engine(test_settings.database_url_sync)
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    engine = get_async_engine(test_settings)
    yield create_session_factory(engine)
    engine.sync_engine.dispose()


@pytest.fixture
def repository(session_factory: async_sessionmaker[AsyncSession]) -> SubscriptionRepository:
    return SubscriptionRepository(session_factory)


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def app(
    test_settings: Settings,
    repository: SubscriptionRepository,
    email_sender: FakeEmailSender,
) -> Any:
    """Create test application."""
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    return app


@pytest.fixture
def client(app: Any) -> TestClient:
    """Create synchronous test client."""
    return TestClient(app)


@pytest.fixture
def shop() -> str:
    return SHOP


@pytest.fixture
def make_sender() -> Callable[..., FakeEmailSender]:
    """Factory for EmailSender doubles with configurable failures."""
    return FakeEmailSender


@pytest.fixture
def sign_webhook() -> Callable[[bytes], str]:
    return shopify_hmac


@pytest.fixture
def sign_proxy() -> Callable[[dict[str, str]], str]:
    return app_proxy_signature


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-API-Key": ADMIN_API_KEY}
