# Ensure tests import the package from this checkout first.
import os
import sys

import pytest
from fastapi.testclient import TestClient

SERVICE_ROOT = os.path.dirname(__file__)
if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from piped_proxy.config import ProxyConfig  # noqa: E402
from piped_proxy.server import create_app  # noqa: E402
from piped_proxy.utils_tests.fake_upstream import FakeUpstream  # noqa: E402


@pytest.fixture
def upstream():
    """Fake CDN that answers from a table and records requests."""
    return FakeUpstream()


@pytest.fixture
def make_client(upstream):
    """Run the application against the fake upstream with the given settings."""
    clients = []

    def _make(config=None, fake=None):
        config = config or ProxyConfig()
        app = create_app(config=config, upstream_client=(fake or upstream).client(config))
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)
