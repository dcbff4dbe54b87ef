"""Wiki generation configuration.

These settings control retries, concurrency and the operation names used
when recording token usage.
"""

# =============================================================================
# Retry Policy
# =============================================================================
# Transient provider failures are retried with exponential backoff. Each delay
# is base * 2^(attempt-1) plus up to RETRY_JITTER_MS of random jitter, and is
# never longer than MAX_RETRY_DELAY_MS.

DEFAULT_MAX_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_MS = 1000
RETRY_JITTER_MS = 1000
MAX_RETRY_DELAY_MS = 60_000

# Lowercased substrings that mark an error message as transient.
TRANSIENT_ERROR_MARKERS = (
    "timeout",
    "timed out",
    "rate limit",
    "too many requests",
    "service unavailable",
    "temporarily unavailable",
    "unavailable",
    "connection",
    "network",
    "response ended prematurely",
    "502",
    "503",
    "504",
)

# =============================================================================
# Concurrency and Timeouts
# =============================================================================
# Each document is its own multi-turn agent session, so the default fan-out
# stays in single digits.

DEFAULT_PARALLEL_COUNT = 5
DEFAULT_DOCUMENT_TIMEOUT_MINUTES = 20
DEFAULT_TRANSLATION_TIMEOUT_MINUTES = 10
DEFAULT_TITLE_TRANSLATION_TIMEOUT_MINUTES = 2

# =============================================================================
# Incremental Updates
# =============================================================================
# Only the first CHANGED_FILES_LOG_LIMIT changed files are written to the log.

CHANGED_FILES_LOG_LIMIT = 50

# =============================================================================
# Token Usage Operation Names
# =============================================================================

OPERATION_CATALOG = "CatalogGeneration"
OPERATION_MIND_MAP = "MindMapGeneration"
OPERATION_INCREMENTAL = "IncrementalUpdate"
OPERATION_DOCUMENT_PREFIX = "DocumentContent:"
OPERATION_TRANSLATE_TITLE = "Translation:CatalogTitle"
OPERATION_TRANSLATE_CONTENT = "Translation:Content"
OPERATION_TRANSLATE_MIND_MAP = "Translation:MindMap"
