# wms_core/config.py
import os

from dotenv import load_dotenv

# .env 파일의 값을 읽되, 실제 환경 변수가 있으면 덮어쓰지 않습니다.
load_dotenv()

DATABASE_URL = os.getenv("WMS_DATABASE_URL", "sqlite:///wms_core.db")
LOG_LEVEL = os.getenv("WMS_LOG_LEVEL", "INFO")

HOST = os.getenv("WMS_HOST", "")
PORT = int(os.getenv("WMS_PORT", "8000"))

# POST /v1/auth/tokens로 발급되는 토큰의 유효 시간 (분)
TOKEN_TTL_MINUTES = int(os.getenv("WMS_TOKEN_TTL_MINUTES", "60"))

# 새로 생성된 사용자에게 부여할 역할 slug. 비워 두면 기본 역할을 부여하지 않습니다.
DEFAULT_ROLE_SLUG = os.getenv("WMS_DEFAULT_ROLE", "employee")
