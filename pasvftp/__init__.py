"""pasvftp: a passive-mode FTP client with an interactive shell."""

from .core import FTPSession, FTPError, TransferMode, UnexpectedStatus

__version__ = "0.1.0"

__all__ = ["FTPSession", "FTPError", "TransferMode", "UnexpectedStatus", "__version__"]
