import logging
from typing import Optional

from wms_core import config

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """서버와 CLI 진입점에서 루트 로거를 한 번 설정합니다."""
    logging.basicConfig(
        level=(level or config.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
