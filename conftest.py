# Make `import edge_relay` resolve to this checkout when pytest runs from the
# project root without an installed package.
import os
import sys

import pytest

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from edge_relay.utils_tests.fakes import FakeUpstreamConnector  # noqa: E402


@pytest.fixture
def upstreams():
    """Every fake upstream connector created during the test, in creation order."""
    return []


@pytest.fixture
def connector_factory(upstreams):
    def _factory(url, emit):
        connector = FakeUpstreamConnector(url, emit)
        upstreams.append(connector)
        return connector

    return _factory
