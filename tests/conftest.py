import os
from typing import Iterator

import httpx
import pytest
from fcrepo_tx.client import FcrepoClient

from tests.helpers.fake_repository import ROOT, FakeRepository

FCREPO_ENV_VARS = [
    "FCREPO_BASE_URL",
    "FCREPO_USERNAME",
    "FCREPO_PASSWORD",
    "FCREPO_TIMEOUT",
    "FCREPO_TX_ROUTING",
    "FCREPO_TX_KEEP_ALIVE_INTERVAL",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def isolate_environment():
    """AUTOUSE: Removes client settings picked up from a local .env and restores the environment afterwards."""
    original_environ = os.environ.copy()
    for name in FCREPO_ENV_VARS:
        os.environ.pop(name, None)

    yield

    os.environ.clear()
    os.environ.update(original_environ)


@pytest.fixture
def repository() -> FakeRepository:
    """Provides a fresh in-memory repository for each test."""
    return FakeRepository()


@pytest.fixture
def root() -> str:
    return ROOT


@pytest.fixture
def http_client(repository: FakeRepository) -> Iterator[httpx.Client]:
    """Provides an httpx client whose transport is the fake repository."""
    with httpx.Client(transport=httpx.MockTransport(repository.handle)) as client:
        yield client


@pytest.fixture
def client(http_client: httpx.Client) -> FcrepoClient:
    """Provides a base client sharing the fake repository's httpx client."""
    return FcrepoClient(http_client)
