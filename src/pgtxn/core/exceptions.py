"""Exception hierarchy for pgtxn.

All exceptions carry an exit_code for CLI return value mapping.
Exit codes are defined in exit_codes.py.
"""

from pgtxn.core.exit_codes import ExitCode


class PgTxnError(Exception):
    """Base exception for all pgtxn errors."""

    exit_code: int = ExitCode.GENERAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ParseError(PgTxnError):
    """Malformed array literal."""

    exit_code: int = ExitCode.INPUT_ERROR

    def __init__(self, message: str, fragment: str = "") -> None:
        self.fragment = fragment
        if fragment:
            message = f"{message} near {fragment!r}"
        super().__init__(message)


class DecodeError(PgTxnError):
    """Raw row does not match the column metadata."""


class FetchError(PgTxnError):
    """Server reported an error while rows were being fetched."""


class QueryError(PgTxnError):
    """Server rejected a dispatched statement."""


class TransactionError(PgTxnError):
    """Operation on a transaction that has been committed or rolled back."""


class RefCountError(PgTxnError):
    """Reference count used after release or decremented below zero."""


class NetworkError(PgTxnError):
    """Connection failures, unreachable host."""

    exit_code: int = ExitCode.NETWORK_ERROR


class TimeoutError(NetworkError):
    """Statement or connection timeout."""

    exit_code: int = ExitCode.TIMEOUT


class InputError(PgTxnError):
    """File not found, invalid parameters."""

    exit_code: int = ExitCode.INPUT_ERROR


class ConfigError(PgTxnError):
    """Malformed config, missing profile, invalid type table."""

    exit_code: int = ExitCode.CONFIG_ERROR
