"""
Core FTP client logic.
Includes the control connection, the passive data connection coordinator,
the reply parser and the session operations built on them.
"""

from .connection import ControlConnectionManager, CommandHandle
from .data_connection import DataConnectionManager, DataExchange, Signal
from .session import FTPSession, SessionState
from .parser import Parser, Reply, PassiveEndpoint
from .status import ReplyCode, TransferMode
from .errors import (
    FTPError,
    FTPConnectError,
    FTPWriteError,
    FTPReadError,
    FTPProtocolError,
    MalformedReplyError,
    AddressParseError,
    UnexpectedStatus,
    DataChannelError,
    FTPStateError,
    CommandInFlightError,
)

__all__ = [
    "ControlConnectionManager",
    "CommandHandle",
    "DataConnectionManager",
    "DataExchange",
    "Signal",
    "FTPSession",
    "SessionState",
    "Parser",
    "Reply",
    "PassiveEndpoint",
    "ReplyCode",
    "TransferMode",
    "FTPError",
    "FTPConnectError",
    "FTPWriteError",
    "FTPReadError",
    "FTPProtocolError",
    "MalformedReplyError",
    "AddressParseError",
    "UnexpectedStatus",
    "DataChannelError",
    "FTPStateError",
    "CommandInFlightError",
]
