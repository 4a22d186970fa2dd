import logging.config
import sys
from typing import Dict, List


def _logger(handlers: List[str], level: str, propagate: bool = False) -> Dict:
    return {"handlers": handlers, "level": level, "propagate": propagate}


def setup_logging(log_level: str = "INFO", sql_echo: bool = False):
    """콘솔(stdout) + WARNING 이상 상세 로그(stderr) 구성

    정산 서비스(shopapi.services)는 LOG_LEVEL 과 무관하게 INFO 이상을 남겨
    포인트 차감/적립/회수 이력을 항상 추적할 수 있게 합니다.
    """
    log_level = log_level.upper()
    level_no = logging.getLevelName(log_level)
    if not isinstance(level_no, int):
        level_no = logging.INFO
    settlement_level = min(level_no, logging.INFO)
    both = ["console", "error_console"]

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "detailed": {
                    "format": "%(asctime)s | %(levelname)-8s | %(name)s\n%(pathname)s:%(lineno)d\n%(message)s",
                },
                "simple": {
                    "format": "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "formatter": "simple",
                    "class": "logging.StreamHandler",
                    "stream": sys.stdout,
                },
                "error_console": {
                    "formatter": "detailed",
                    "class": "logging.StreamHandler",
                    "stream": sys.stderr,
                    "level": "WARNING",
                },
            },
            "loggers": {
                "": _logger(both, log_level, propagate=True),
                "uvicorn.error": _logger(both, log_level),
                "uvicorn.access": _logger(["console"], log_level),
                "shopapi": _logger(both, log_level),
                "shopapi.services": _logger(both, logging.getLevelName(settlement_level)),
                # SQL 로그는 DEBUG 설정 시에만
                "sqlalchemy.engine": _logger(
                    ["console"], "INFO" if sql_echo else "WARNING"
                ),
            },
        }
    )
