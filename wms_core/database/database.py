from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from wms_core import config


def build_engine(url: str, **engine_kwargs):
    """
    주어진 URL로 엔진을 생성합니다. 추가 키워드 인자는 create_engine으로 전달됩니다.

    SQLite는 스레드 WSGI 서버를 위해 check_same_thread를 꺼야 하며,
    외래 키는 연결마다 켜 주어야 강제됩니다.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, **engine_kwargs)

    engine = create_engine(url, connect_args={"check_same_thread": False}, **engine_kwargs)

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


engine = build_engine(config.DATABASE_URL)

# 데이터베이스 세션 생성을 위한 SessionLocal 클래스
# autocommit=False, autoflush=False로 설정하여, 리포지토리가 명시적으로 commit을 호출합니다.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 모든 모델 클래스가 상속받을 Base 클래스
Base = declarative_base()
