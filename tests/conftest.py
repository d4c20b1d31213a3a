import pytest

from catering.db import connect, ensure_schema


@pytest.fixture
def conn():
    c = connect(":memory:")
    ensure_schema(c)
    yield c
    c.close()
