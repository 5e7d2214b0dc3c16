from typing import Callable

import pytest

from pocket_ledger.persistence import InMemoryPersistence, Persistence, SqlPersistence


@pytest.fixture(params=["memory", "sql"])
def make_ledger(request, tmp_path) -> Callable[[], Persistence]:
    def factory() -> Persistence:
        if request.param == "sql":
            return SqlPersistence(f"sqlite:///{tmp_path / 'ledger.db'}", default_currency="MYR")
        return InMemoryPersistence(default_currency="MYR")

    return factory


@pytest.fixture
def ledger(make_ledger):
    persistence = make_ledger()
    persistence.initialize()
    yield persistence
    persistence.close()
