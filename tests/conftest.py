import pytest

from cellspace import Session


@pytest.fixture
def session():
    """An open, active session; closed after the test."""
    s = Session("test")
    with s.activate():
        yield s
    s.close()
