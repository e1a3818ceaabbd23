"""store-report — Turn daily store allocation sheets into copyable text reports."""

__version__ = "0.2.0"

SUPPORTED_SUFFIXES: tuple[str, ...] = (".xlsx", ".xlsm", ".xltx", ".xltm", ".xls", ".csv")
MAX_FILE_BYTES = 20 * 1024 * 1024
PERSISTED_ROW_LIMIT = 500
