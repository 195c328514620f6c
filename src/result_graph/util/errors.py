from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    OK = 0
    CONFIG_ERROR = 2
    INPUT_ERROR = 3
    CONTRACT_ERROR = 4
    RUNTIME_ERROR = 5


class ResultGraphError(Exception):
    """Base error for the result graph pipeline."""


class ConfigError(ResultGraphError):
    """Raised for configuration or argument issues."""


class InputError(ResultGraphError):
    """Raised when an input document cannot be read or has the wrong shape."""


class ContractError(ResultGraphError):
    """Raised when the printout table and the rows do not fit together."""


class UnknownPrintoutError(ContractError):
    """Raised when a row references a printout hash absent from the descriptor table."""

    def __init__(self, printout_hash: str) -> None:
        super().__init__(f"Row references unknown printout: {printout_hash}")
        self.printout_hash = printout_hash


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, (ConfigError, ValueError)):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, InputError):
        return int(ExitCode.INPUT_ERROR)
    if isinstance(exc, ContractError):
        return int(ExitCode.CONTRACT_ERROR)
    if isinstance(exc, ResultGraphError):
        return int(ExitCode.RUNTIME_ERROR)
    return 1
