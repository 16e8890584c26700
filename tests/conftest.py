import sys
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy.orm import Session, sessionmaker

# Ensure src/ is importable for tests
ROOT_DIR = Path(__file__).resolve().parent.parent
SRC_DIR = ROOT_DIR / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from bias_detector.config.loader import (  # noqa: E402
    BiasDetectorConfig,
    reset_config,
    set_config,
)
from bias_detector.config.models import (  # noqa: E402
    CoreConfig,
    DatabaseConfig,
    GeminiConfig,
    SecurityConfig,
)
from bias_detector.db.models import Base  # noqa: E402
from bias_detector.db.session import build_engine  # noqa: E402

TEST_SECRET = "test-secret-key-with-enough-bytes-for-hs256"


@pytest.fixture
def test_config() -> Generator[BiasDetectorConfig, None, None]:
    """Install an isolated test configuration as the global singleton."""
    config = BiasDetectorConfig(
        core=CoreConfig(env="test"),
        gemini=GeminiConfig(api_key=None, timeout_seconds=5.0),
        database=DatabaseConfig(url="sqlite://"),
        security=SecurityConfig(jwks_url=None, secret_key=TEST_SECRET),
    )
    set_config(config)
    yield config
    reset_config()


@pytest.fixture
def session_factory() -> Generator[sessionmaker[Session], None, None]:
    """In-memory SQLite shared across threads for the duration of a test."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
