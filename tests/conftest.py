import pytest

import app as app_module
from gdbmi import GdbMiParser


class Collector:
    """Callback that records every batch it is given."""

    def __init__(self):
        self.batches = []

    def __call__(self, batch):
        self.batches.append(batch)

    @property
    def outputs(self):
        return [out for batch in self.batches for out in batch]


@pytest.fixture
def collector() -> Collector:
    return Collector()


@pytest.fixture
def parser(collector):
    with GdbMiParser(collector) as p:
        yield p


@pytest.fixture
def client():
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as c:
        yield c
    for session_id in list(app_module.SESSIONS):
        app_module.close_session(session_id)
