"""Standard exit codes for the velox CLI.

Exit codes follow Unix conventions; each exception class maps onto one.
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes for velox commands."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    USAGE_ERROR = 2
    INPUT_ERROR = 3
    OUTPUT_ERROR = 4
    NETWORK_ERROR = 5
    TIMEOUT = 6
    CONFIG_ERROR = 7
    COMPILATION_ERROR = 8
    TRANSACTION_ERROR = 9
    CONSISTENCY_ERROR = 10
    CANCELLED = 11
