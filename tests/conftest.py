"""
Pytest configuration to ensure paths are set up correctly for tests.

This allows imports like `from handlers import checkout` to work
when running tests, simulating the Lambda environment where code
is deployed from the src/ directory.
"""

import itertools
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


def _ensure_paths_on_sys_path() -> None:
    """Add repository root AND src/ to sys.path if missing.

    The src/ directory is added to simulate Lambda's import behavior,
    where Code.from_asset("src") makes src/ the root of the package.
    """
    repo_root = Path(__file__).resolve().parents[1]
    src_root = repo_root / "src"

    # Add repo root first (for imports like infrastructure.*)
    root_str = str(repo_root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)

    # Add src/ for Lambda-style imports (from handlers import ...)
    src_str = str(src_root)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


_ensure_paths_on_sys_path()

# Offline-friendly AWS defaults so tests never reach real AWS.
os.environ.setdefault("AWS_REGION", "eu-west-2")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-2")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("AWS_SESSION_TOKEN", "test")
os.environ.setdefault("ENVIRONMENT", "dev")

# Lambda environment variables used by handlers
os.environ.setdefault("TICKET_SIGNING_SECRET", "test-signing-secret")
os.environ.setdefault("ORDER_STORE", "memory")
os.environ.setdefault("ADMIN_API_TOKEN", "test-admin-token")

from models.order import CheckoutRequest  # noqa: E402
from repositories.idempotency_repo import InMemoryIdempotencyBackend  # noqa: E402
from repositories.memory_repo import InMemoryOrderStore  # noqa: E402
from services.idempotency_service import IdempotencyGuard  # noqa: E402
from services.signing_service import Signer  # noqa: E402
from services.ticket_service import TicketService  # noqa: E402

BASE_TIME = datetime(2026, 10, 18, 18, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Drop process-wide settings/service so env changes take effect per test."""
    import utils.settings
    import services.ticket_service

    utils.settings._settings = None
    services.ticket_service._default_service = None
    yield
    utils.settings._settings = None
    services.ticket_service._default_service = None


@pytest.fixture
def clock():
    """Strictly increasing clock: one second per call."""
    ticks = itertools.count()
    return lambda: BASE_TIME + timedelta(seconds=next(ticks))


@pytest.fixture
def signer() -> Signer:
    return Signer("test-signing-secret")


@pytest.fixture
def store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture
def idempotency_guard() -> IdempotencyGuard:
    return IdempotencyGuard(InMemoryIdempotencyBackend(ttl_seconds=60), ttl_seconds=60)


@pytest.fixture
def ticket_service(store, signer, idempotency_guard, clock) -> TicketService:
    return TicketService(
        store=store,
        signer=signer,
        idempotency=idempotency_guard,
        clock=clock,
    )


@pytest.fixture
def checkout_request() -> CheckoutRequest:
    return CheckoutRequest(name="Maria Silva", email="maria@example.com", ticket_type="vip")
