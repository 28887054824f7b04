import logging, logging.config

# Service modules log state changes (deal moves, contract cascades, payments)
APP_LOGGER = "app"


def setup_logging(level: str = "INFO", access_log: bool = True, sql_echo: bool = False):
    level = level.upper()
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                        "datefmt": "%Y-%m-%d %H:%M:%S"},
            # Uvicorn pre-formats access lines
            "access_simple": {"format": "%(message)s"},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "default"},
            "access":  {"class": "logging.StreamHandler", "formatter": "access_simple"},
        },
        "loggers": {
            APP_LOGGER: {"level": level, "handlers": ["console"], "propagate": False},
            "uvicorn.error":  {"level": level, "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": ("INFO" if access_log else "WARNING"),
                               "handlers": ["access"], "propagate": False},
            "sqlalchemy.engine": {"level": ("INFO" if sql_echo else "WARNING")},
            "alembic": {"level": "INFO"},
        },
        "root": {"level": "WARNING", "handlers": ["console"]},
    })
    logging.getLogger(APP_LOGGER).debug("Logging configured at %s", level)
