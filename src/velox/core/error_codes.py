"""Stable numeric error codes.

These codes, not the message text, are the contract callers may branch on.
"""

from enum import IntEnum


class ErrorCode(IntEnum):
    GENERAL_ERROR = 1
    INPUT_MISSING = 2

    # configuration
    CONFIG_INVALID = 10
    HOST_MISSING = 11
    DATABASE_MISSING = 12
    USER_MISSING = 13
    UNSUPPORTED_ENGINE = 16

    # connection state
    NO_ACTIVE_TRANSACTION = 18
    SQL_NOT_SET = 19

    # execution
    PREPARE_FAILED = 20
    EXECUTE_FAILED = 21
    RESULTS_NOT_AVAILABLE = 22
    CONNECTION_FAILED = 41
    STATEMENT_TIMEOUT = 42
    CANCELLED = 43

    # compilation
    OPERAND_MISSING = 23
    BETWEEN_OPERAND_MISSING = 24
    CRITERIA_NOT_SET = 25
    IN_OPERAND_NOT_ARRAY = 28
    UNSUPPORTED_OPERATOR = 36
    INVALID_IDENTIFIER = 40
    MIXED_PLACEHOLDERS = 44
    PARAMETER_SET_MISMATCH = 45
    PLACEHOLDER_UNKNOWN = 46
    CRITERIA_KEYS = 47
    NON_SCALAR_VALUE = 50
    INPUT_NOT_SUPPORTED = 51
    INVALID_RESULT_OPTION = 56
    STORED_PROCEDURE_UNSUPPORTED = 58
    CRITERIA_INVALID = 63

    # transactions
    TRANSACTION_NO_CONNECTION = 26
    TRANSACTION_STEP_FAILED = 27
    TRANSACTION_ABORTED = 34
    COMMIT_FAILED = 35
    USER_FUNCTION_FAILED = 39
    PARAMETERS_WITHOUT_PREPARED = 61
    CRITERIA_WITHOUT_STATEMENT_SET = 62

    # consistency / model
    MULTIPLE_RESULT_SETS = 29
    PROCEDURE_UNDEFINED = 37
    INVALID_COLUMN = 38
    MODEL_ROW_ASSIGNMENT = 48
    OFFSET_OUT_OF_BOUNDS = 49
