"""Dependencies: the fallback storage build happens once under concurrent first requests."""
import threading
import time
from types import SimpleNamespace
from unittest.mock import patch

from archive.core.deps import get_storage
from archive.services.storage.memory import MemoryStorage


def _request_for(app_state):
    return SimpleNamespace(app=SimpleNamespace(state=app_state))


def test_get_storage_prefers_startup_backend():
    storage = MemoryStorage()
    with patch("archive.core.deps.build_storage") as m_build:
        assert get_storage(_request_for(SimpleNamespace(storage=storage))) is storage
    m_build.assert_not_called()


def test_fallback_build_runs_once_under_concurrency():
    state = SimpleNamespace()
    built = []

    def _slow_build():
        time.sleep(0.05)
        backend = MemoryStorage()
        built.append(backend)
        return backend

    results = []
    start = threading.Barrier(8)

    def _worker():
        start.wait()
        results.append(get_storage(_request_for(state)))

    with patch("archive.core.deps.build_storage", side_effect=_slow_build):
        threads = [threading.Thread(target=_worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5)

    assert len(built) == 1
    assert len(results) == 8
    assert all(r is built[0] for r in results)
    assert state.storage is built[0]
