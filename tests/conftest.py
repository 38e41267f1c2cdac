import asyncio
import inspect
import os
from pathlib import Path
import sys
from collections.abc import Iterator

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cratedigger.config import override_runtime_env  # noqa: E402
from cratedigger.db import reset_engine_for_tests  # noqa: E402
from cratedigger.dependencies import get_app_config, get_spotify_catalog_client  # noqa: E402

_MANAGED_ENV = (
    "SPOTIFY_CLIENT_ID",
    "SPOTIFY_CLIENT_SECRET",
    "DATABASE_URL",
    "DB_RESET",
    "ADMIN_ROLE",
    "IMPORT_GENRE_FALLBACK",
)


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    marker = pyfuncitem.get_closest_marker("asyncio")
    if marker is None:
        return None
    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None
    fixtureinfo = getattr(pyfuncitem, "_fixtureinfo", None)
    if fixtureinfo is None:
        return None
    kwargs = {name: pyfuncitem.funcargs[name] for name in fixtureinfo.argnames}
    asyncio.run(test_func(**kwargs))
    return True


def _clear_dependency_caches() -> None:
    get_app_config.cache_clear()
    get_spotify_catalog_client.cache_clear()


@pytest.fixture(autouse=True)
def _test_environment(tmp_path: Path) -> Iterator[None]:
    previous = {name: os.environ.get(name) for name in _MANAGED_ENV}
    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True, exist_ok=True)

    os.environ["SPOTIFY_CLIENT_ID"] = "test-client"
    os.environ["SPOTIFY_CLIENT_SECRET"] = "test-secret"
    os.environ["DATABASE_URL"] = f"sqlite:///{data_dir / 'cratedigger.db'}"
    for name in ("DB_RESET", "ADMIN_ROLE", "IMPORT_GENRE_FALLBACK"):
        os.environ.pop(name, None)

    override_runtime_env(None)
    reset_engine_for_tests()
    _clear_dependency_caches()
    try:
        yield
    finally:
        reset_engine_for_tests()
        override_runtime_env(None)
        _clear_dependency_caches()
        for name, value in previous.items():
            if value is None:
                os.environ.pop(name, None)
            else:
                os.environ[name] = value
