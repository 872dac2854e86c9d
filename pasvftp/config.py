"""
Client configuration.

Values come from environment variables and can be overridden by the
command line flags of ``pasvftp.entrypoint``:

- PASVFTP_HOST: server to offer at the Host prompt (default: none)
- PASVFTP_PORT: control port (default: 21)
- PASVFTP_USER: username to offer at the Username prompt (default: none)
- PASVFTP_TIMEOUT: socket timeout in seconds; unset or 0 means block forever
- PASVFTP_LOG_LEVEL: ERROR|WARNING|INFO|DEBUG (default: WARNING)
- PASVFTP_UI_HOST / PASVFTP_UI_PORT: Streamlit bind address (default: 0.0.0.0:8501)
"""

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_PORT = 21
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_UI_HOST = "0.0.0.0"
DEFAULT_UI_PORT = 8501
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return int(v.strip())
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", name, v)
        return default


def _env_timeout(name: str) -> Optional[float]:
    v = os.getenv(name)
    if v is None or not v.strip():
        return None
    try:
        timeout = float(v.strip())
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", name, v)
        return None
    return timeout if timeout > 0 else None


class ClientConfig:
    def __init__(self, host: str = None, port: int = DEFAULT_PORT, user: str = None,
                 timeout: Optional[float] = None, log_level: str = DEFAULT_LOG_LEVEL,
                 ui_host: str = DEFAULT_UI_HOST, ui_port: int = DEFAULT_UI_PORT):
        self.host = host
        self.port = port
        self.user = user
        self.timeout = timeout
        self.log_level = log_level.upper()
        self.ui_host = ui_host
        self.ui_port = ui_port

    @classmethod
    def from_env(cls) -> "ClientConfig":
        return cls(
            host=os.getenv("PASVFTP_HOST") or None,
            port=_env_int("PASVFTP_PORT", DEFAULT_PORT),
            user=os.getenv("PASVFTP_USER") or None,
            timeout=_env_timeout("PASVFTP_TIMEOUT"),
            log_level=os.getenv("PASVFTP_LOG_LEVEL", DEFAULT_LOG_LEVEL),
            ui_host=os.getenv("PASVFTP_UI_HOST", DEFAULT_UI_HOST),
            ui_port=_env_int("PASVFTP_UI_PORT", DEFAULT_UI_PORT),
        )

    def __repr__(self):
        return (f"ClientConfig(host={self.host!r}, port={self.port}, user={self.user!r}, "
                f"timeout={self.timeout}, log_level={self.log_level!r})")


def configure_logging(level: str = DEFAULT_LOG_LEVEL):
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), format=LOG_FORMAT)
