# tests/conftest.py
import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from wms_core.database.database import Base, build_engine
from wms_core.database import models  # noqa: F401  (모든 테이블을 Base.metadata에 등록)


@pytest.fixture
def engine():
    """외래 키가 강제되는 새 인메모리 SQLite 데이터베이스를 생성합니다."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()
