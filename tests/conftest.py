import pytest

from reasoning_loop import display


@pytest.fixture(autouse=True)
def quiet_console():
    display.configure(quiet=True)
    yield
    display.configure(quiet=False)
