"""Shared fixtures."""

import pytest

from tests.helpers import Deployment, make_deployment


@pytest.fixture
def deployment() -> Deployment:
    return make_deployment()
