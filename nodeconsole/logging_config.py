"""
Custom logging configuration that keeps SSH transport chatter out of the logs
"""

import logging
import logging.config
from typing import Any, Dict


class ParamikoTransportFilter(logging.Filter):
    """Filter to suppress paramiko transport records below WARNING."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Drop informational paramiko transport records (they name hosts and users)."""
        if record.name.startswith("paramiko.transport"):
            if record.levelno < logging.WARNING:
                return False
        return True


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """Get logging configuration with paramiko transport suppression."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "paramiko_transport_filter": {
                "()": ParamikoTransportFilter
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout"
            },
            "transport": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
                "filters": ["paramiko_transport_filter"]
            }
        },
        "loggers": {
            "paramiko": {
                "handlers": ["transport"],
                "level": level,
                "propagate": False
            },
            "nodeconsole": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            }
        },
        "root": {
            "level": "INFO",
            "handlers": ["default"]
        }
    }


def configure_logging(level: str = "INFO") -> None:
    """Apply the NodeConsole logging configuration."""
    logging.config.dictConfig(get_logging_config(level))
