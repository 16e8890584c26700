import pytest
from bias_detector.api.errors import http_exception_handler
from bias_detector.common.exceptions import ConfigurationError
from bias_detector.db import session as db_session_module
from bias_detector.db.models import StoredAnalysis
from sqlalchemy import select


@pytest.fixture
def fresh_engine(test_config):
    db_session_module.reset_engine()
    yield
    db_session_module.reset_engine()


def test_session_factory_uses_configured_database(fresh_engine):
    db_session_module.init_db()
    factory = db_session_module.get_session_factory()

    with factory() as session:
        assert session.execute(select(StoredAnalysis)).scalars().all() == []
    assert str(db_session_module.get_engine().url) == "sqlite://"


def test_session_factory_raises_when_engine_is_gone(fresh_engine, monkeypatch):
    monkeypatch.setattr(db_session_module, "get_engine", lambda: None)

    with pytest.raises(ConfigurationError) as exc_info:
        db_session_module.get_session_factory()

    assert exc_info.value.error_code == "DB_NOT_INITIALIZED"


@pytest.mark.asyncio
async def test_http_handler_falls_back_for_other_exceptions():
    response = await http_exception_handler(None, RuntimeError("boom"))

    assert response.status_code == 500
