from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from pushrelay.config import Settings, override_settings
from pushrelay.main import app
from pushrelay.notifications.signer import CryptographySigner
from pushrelay.notifications.store import PushSubscriptionStore
from pushrelay.notifications.vapid import (
    VapidKeys,
    generate_vapid_keys,
    load_vapid_keys,
)

# P-256 key from RFC 7515 appendix A.3.
FIXTURE_PUBLIC_KEY = (
    "BH_Nzidw9sRdQYPL7m_bS3tYBzM1e-nvE7rPbjx70VRFx_FEzRu9m36HLN_tue659LNpXW6pCyStikYjKIWI5a0"
)
FIXTURE_PRIVATE_KEY = "jpsQnnGQmL-YBIffH1136cspYG6-0iY7X1fCE9-E9LI"

SUBJECT = "mailto:ops@example.com"


@pytest.fixture(autouse=True)
def _test_settings(tmp_path):
    """Override settings so tests use an isolated DB."""
    override_settings(
        Settings(
            state_dir=str(tmp_path),
            vapid_public_key=FIXTURE_PUBLIC_KEY,
            vapid_private_key=FIXTURE_PRIVATE_KEY,
            vapid_subject=SUBJECT,
        )
    )
    yield
    override_settings(None)


@pytest.fixture
def signer() -> CryptographySigner:
    return CryptographySigner()


@pytest.fixture
def vapid_keys(signer) -> VapidKeys:
    return load_vapid_keys(FIXTURE_PUBLIC_KEY, FIXTURE_PRIVATE_KEY, signer=signer)


@pytest.fixture
def random_vapid_keys(signer) -> VapidKeys:
    public_key, private_key = generate_vapid_keys()
    return load_vapid_keys(public_key, private_key, signer=signer)


@pytest.fixture
def store(tmp_path):
    s = PushSubscriptionStore(tmp_path / "push.db")
    yield s
    s.close()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[httpx.AsyncClient]:
    """Async test client.

    Test modules should set app.state.push_notifier and
    app.state.push_store before using this client.
    """
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
