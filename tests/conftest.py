import logging

import pytest
from queryjson.connection import dispose_all_engines

logging.getLogger('queryjson').setLevel(logging.DEBUG)


@pytest.fixture(autouse=True, scope='session')
def dispose_engines():
    """Dispose registered engines once the session ends."""
    yield
    dispose_all_engines()


pytest_plugins = [
    'tests.fixtures.models',
    'tests.fixtures.sqlite',
    'tests.fixtures.postgres',
]
