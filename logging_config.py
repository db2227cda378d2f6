import logging
from logging.config import dictConfig

from config.settings import settings

# "app" covers HTTP and persistence, "utils" the recurrence engine
DOMAIN_LOGGERS = ("app", "utils")


def configure_logging(level: str = None):
    level = (level or settings.LOG_LEVEL).upper()

    domain_loggers = {
        name: {"handlers": ["console", "errors"], "level": level, "propagate": False}
        for name in DOMAIN_LOGGERS
    }

    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "format": "%(asctime)s %(levelname)s: %(name)s: %(message)s"
            },
            "errors": {
                "format": "%(asctime)s %(levelname)s: %(name)s: %(funcName)s: %(message)s"
            }
        },
        "handlers": {
            "console": {
                "formatter": "console",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
            "errors": {
                "formatter": "errors",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "level": "ERROR"
            }
        },
        "loggers": {
            "uvicorn": {"handlers": ["console"], "level": "INFO"},
            "uvicorn.error": {"handlers": ["errors"], "level": "ERROR"},
            "fastapi": {"handlers": ["console"], "level": "INFO", "propagate": False},
            "sqlalchemy": {"handlers": ["errors"], "level": "ERROR", "propagate": False},
            **domain_loggers,
        },
        "root": {
            "handlers": ["console"],
            "level": "WARNING"
        }
    })
    logging.getLogger("app").debug(f"Logging configured at {level}")
