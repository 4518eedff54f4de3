import os

# la configuración se lee al importar app.core.config
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("TOTP_ENCRYPTION_KEY", "00112233445566778899aabbccddeeff" * 2)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("NOTIFY_WEBHOOK_URL", "")

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_principal_repository
from app.core.vault import SecretVault
from app.main import app
from app.services.pending import ExpiringStore
from app.services.principal_store import InMemoryPrincipalRepository
from app.services.two_factor import TwoFactorService

T0 = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def vault():
    return SecretVault(os.urandom(32))


@pytest.fixture
def repository():
    return InMemoryPrincipalRepository()


@pytest.fixture
def service(repository, vault, clock):
    return TwoFactorService(
        repository,
        vault,
        ExpiringStore(clock=clock),
        ExpiringStore(clock=clock),
        issuer="PrimeGenesis",
        max_attempts=3,
        enrollment_ttl=600,
        challenge_ttl=300,
        lockout_seconds=900,
        clock=clock,
    )


@pytest.fixture
def client(repository):
    app.dependency_overrides[get_principal_repository] = lambda: repository
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
