from enum import Enum


class ErrorCode(str, Enum):
    EMPTY_INPUT = "EMPTY_INPUT"
    NOT_CONFIGURED = "NOT_CONFIGURED"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    SUBMIT_FAILED = "SUBMIT_FAILED"
    POLL_FAILED = "POLL_FAILED"
    TIMEOUT = "TIMEOUT"
    # logged only, never returned to the caller
    LEDGER_UNAVAILABLE = "LEDGER_UNAVAILABLE"
    LEDGER_WRITE_FAILED = "LEDGER_WRITE_FAILED"
