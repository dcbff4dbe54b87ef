"""LLM client configuration.

Default parameters for model sessions. These can be overridden per call
but provide sensible defaults for most use cases.
"""

# =============================================================================
# Generation Defaults
# =============================================================================
# MAX_TOKENS caps the length of a single model round.
# DEFAULT_TEMPERATURE balances creativity and consistency (0.7 is a common default).
# TRANSLATION_TEMPERATURE is lower so translations stay close to the source.

MAX_TOKENS = 16384
DEFAULT_TEMPERATURE = 0.7
TRANSLATION_TEMPERATURE = 0.3

# =============================================================================
# Agent Sessions
# =============================================================================
# An agent session alternates model rounds and tool calls until the model
# answers without requesting a tool. MAX_AGENT_TURNS bounds the number of
# model rounds so a model that keeps calling tools cannot loop forever.

MAX_AGENT_TURNS = 40

# =============================================================================
# Query Log
# =============================================================================
# Response headers worth keeping in the JSONL query log when a call fails.

LOGGED_RESPONSE_HEADERS = (
    "x-ratelimit-limit-requests",
    "x-ratelimit-limit-tokens",
    "x-ratelimit-remaining-requests",
    "x-ratelimit-remaining-tokens",
    "x-ratelimit-reset-requests",
    "x-ratelimit-reset-tokens",
    "retry-after",
    "x-request-id",
)
