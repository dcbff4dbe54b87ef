"""Configuration constants.

Re-exports all constants for convenient importing:
    from wikigen.constants import MAX_RETRY_DELAY_MS, DEFAULT_EXCLUDES
"""

from wikigen.constants.files import *  # noqa: F403
from wikigen.constants.generation import *  # noqa: F403
from wikigen.constants.llm import *  # noqa: F403
