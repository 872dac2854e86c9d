class ReplyCode:
    """Reply codes the client compares against (RFC 959, section 4.2)."""

    RESTART_MARKER = 110
    SERVICE_READY_IN = 120
    DATA_ALREADY_OPEN = 125
    FILE_STATUS_OK = 150

    COMMAND_OK = 200
    SYSTEM_STATUS = 211
    DIRECTORY_STATUS = 212
    FILE_STATUS = 213
    HELP = 214
    SYSTEM_TYPE = 215
    SERVICE_READY = 220
    CLOSING_CONTROL = 221
    TRANSFER_COMPLETE = 226
    ENTERING_PASSIVE = 227
    LOGGED_IN = 230
    LOGGED_IN_NO_AUTH = 202
    FILE_ACTION_OK = 250
    PATH_CREATED = 257

    NEED_PASSWORD = 331
    NEED_ACCOUNT = 332
    PENDING_FURTHER_INFO = 350

    # Accepted replies to a transfer command before the data moves
    TRANSFER_STARTING = (DATA_ALREADY_OPEN, FILE_STATUS_OK)
    # Accepted replies once the data connection has been closed
    TRANSFER_DONE = (TRANSFER_COMPLETE, FILE_ACTION_OK)
    LOGIN_DONE = (LOGGED_IN, LOGGED_IN_NO_AUTH)


RESPONSE_TYPES = {
    '1': 'preliminary',
    '2': 'success',
    '3': 'missing_info',
    '4': 'transient',
    '5': 'error'
}


class TransferMode:
    """Values for the TYPE command."""

    # Newlines are normalised by the server; preferable for text
    ASCII = "A"
    # Bytes move unchanged
    BINARY = "I"

    ALL = (ASCII, BINARY)
