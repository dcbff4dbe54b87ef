"""Configuration system for wikigen.

This module handles loading settings from environment variables and INI files,
providing sensible defaults, and computing derived paths for the data
directory that holds the wiki database and the LLM query log.
"""

from configparser import ConfigParser
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional
import os


# =============================================================================
# ConfigError Exception
# =============================================================================


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# =============================================================================
# CONFIG_SCHEMA
# =============================================================================

DEFAULT_DATA_DIR = Path.home() / ".wikigen"
DEFAULT_OLLAMA_ENDPOINT = "http://localhost:11434"

# Schema: section -> key -> (type, default, min, max, description)
CONFIG_SCHEMA: dict[str, dict[str, tuple[type, Any, Any, Any, str]]] = {
    "generation": {
        "parallel_count": (int, 5, 1, 50, "Concurrent agent sessions in a fan-out"),
        "max_retry_attempts": (int, 3, 1, 10, "Attempts per agent session"),
        "retry_delay_ms": (int, 1000, 0, 60_000, "Base delay for exponential backoff"),
        "document_generation_timeout_minutes": (
            int,
            20,
            1,
            240,
            "Wall-clock limit for one document",
        ),
        "translation_timeout_minutes": (int, 10, 1, 240, "Wall-clock limit for one translation"),
        "title_translation_timeout_minutes": (
            int,
            2,
            1,
            60,
            "Wall-clock limit for one catalog title",
        ),
        "max_agent_turns": (int, 40, 1, 200, "Model rounds per agent session"),
    },
    "models": {
        "catalog_model": (str, "", None, None, "Model for catalog generation"),
        "content_model": (str, "", None, None, "Model for document content"),
        "translation_model": (str, "", None, None, "Model for translations"),
        "max_output_tokens": (int, 16384, 256, 200_000, "Max response tokens per round"),
        "temperature": (float, 0.7, 0.0, 2.0, "Sampling temperature for agent sessions"),
    },
    "context": {
        "readme_max_length": (int, 4000, 100, 100_000, "README excerpt length in characters"),
        "directory_tree_max_depth": (int, 2, 1, 10, "Directory tree depth"),
        "max_entry_points": (int, 10, 1, 50, "Entry points listed in prompts"),
    },
    "files": {
        "max_file_size_kb": (int, 500, 1, 10_000, "File size limit for agent tools"),
        "read_limit_lines": (int, 2000, 10, 100_000, "Default lines returned by read_file"),
        "max_line_length": (int, 2000, 80, 100_000, "Longest line returned by read_file"),
        "max_results": (int, 50, 1, 1000, "Default results for list_files and grep"),
    },
    "paths": {
        "database_file": (str, "wikigen.db", None, None, "SQLite database file name"),
        "logs_dir": (str, "logs", None, None, "Logs directory name"),
    },
}


# =============================================================================
# Section Dataclasses
# =============================================================================


@dataclass(frozen=True)
class GenerationConfig:
    """Retry, concurrency and timeout configuration."""

    parallel_count: int
    max_retry_attempts: int
    retry_delay_ms: int
    document_generation_timeout_minutes: int
    translation_timeout_minutes: int
    title_translation_timeout_minutes: int
    max_agent_turns: int


@dataclass(frozen=True)
class ModelsConfig:
    """Per-operation model selection."""

    catalog_model: str
    content_model: str
    translation_model: str
    max_output_tokens: int
    temperature: float


@dataclass(frozen=True)
class ContextConfig:
    """Repository context summary limits."""

    readme_max_length: int
    directory_tree_max_depth: int
    max_entry_points: int


@dataclass(frozen=True)
class FilesConfig:
    """Agent file tool limits."""

    max_file_size_kb: int
    read_limit_lines: int
    max_line_length: int
    max_results: int


@dataclass(frozen=True)
class PathsConfig:
    """Path names configuration."""

    database_file: str
    logs_dir: str


SECTION_TYPES: dict[str, type] = {
    "generation": GenerationConfig,
    "models": ModelsConfig,
    "context": ContextConfig,
    "files": FilesConfig,
    "paths": PathsConfig,
}


# =============================================================================
# Config Loader Function
# =============================================================================


def _check_value(section: str, key: str, raw_value: str) -> Any:
    """Convert a raw INI or environment string and check it against the schema.

    Raises:
        ConfigError: If the value has the wrong type or is out of range.
    """
    typ, _, min_val, max_val, _ = CONFIG_SCHEMA[section][key]
    try:
        if typ is bool:
            value = raw_value.strip().lower() in ("true", "1", "yes", "on")
        elif typ in (int, float):
            value = typ(raw_value)
        else:
            value = raw_value.strip()
    except ValueError as e:
        raise ConfigError(
            f"[{section}].{key} must be {typ.__name__}, got {raw_value!r}"
        ) from e

    if typ in (int, float):
        if min_val is not None and value < min_val:
            raise ConfigError(f"[{section}].{key} = {value} is below the minimum of {min_val}")
        if max_val is not None and value > max_val:
            raise ConfigError(f"[{section}].{key} = {value} is above the maximum of {max_val}")
    return value


def _load_section(parser: ConfigParser, section: str) -> Any:
    """Build one section dataclass; keys missing from the file take schema defaults.

    Raises:
        ConfigError: If a value fails validation.
    """
    values = _section_defaults(section)
    if parser.has_section(section):
        for key in CONFIG_SCHEMA[section]:
            if parser.has_option(section, key):
                values[key] = _check_value(section, key, parser.get(section, key))
    return SECTION_TYPES[section](**values)


def _section_defaults(section: str) -> dict[str, Any]:
    """Return the schema defaults for a section."""
    return {key: default for key, (_, default, _, _, _) in CONFIG_SCHEMA[section].items()}


def _load_config(config_path: Optional[Path] = None) -> "Config":
    """Read the INI file into a Config (internal use only).

    The returned data_dir is a placeholder; load_settings() sets the real one.

    Args:
        config_path: INI file to read. None or a missing file gives the
            schema defaults.

    Raises:
        ConfigError: If validation fails
    """
    parser = ConfigParser()
    if config_path and config_path.exists():
        parser.read(config_path, encoding="utf-8")

    sections = {name: _load_section(parser, name) for name in SECTION_TYPES}
    return Config(data_dir=Path("."), **sections)


# =============================================================================
# Config Dataclass with Computed Properties
# =============================================================================


@dataclass(frozen=True)
class Config:
    """Complete application configuration.

    Sections left as None are filled with their schema defaults, so
    ``Config()`` is a usable default configuration.
    """

    data_dir: Path = None  # type: ignore[assignment]
    active_provider: str = "ollama"
    active_model: str = "llama3"
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    ollama_endpoint: str = DEFAULT_OLLAMA_ENDPOINT

    generation: GenerationConfig = None  # type: ignore[assignment]
    models: ModelsConfig = None  # type: ignore[assignment]
    context: ContextConfig = None  # type: ignore[assignment]
    files: FilesConfig = None  # type: ignore[assignment]
    paths: PathsConfig = None  # type: ignore[assignment]

    def __post_init__(self):
        # frozen dataclass
        if self.data_dir is None:
            object.__setattr__(self, "data_dir", DEFAULT_DATA_DIR)
        for name, section_type in SECTION_TYPES.items():
            if getattr(self, name) is None:
                object.__setattr__(self, name, section_type(**_section_defaults(name)))

    @property
    def db_path(self) -> Path:
        """Path to the SQLite database holding catalogs, documents and usage."""
        return self.data_dir / self.paths.database_file

    @property
    def llm_log_path(self) -> Path:
        """JSONL log of every model round."""
        return self.data_dir / self.paths.logs_dir / "llm-queries.jsonl"

    @property
    def catalog_model(self) -> str:
        """Model used for catalog, mind map and incremental sessions."""
        return self.models.catalog_model or self.active_model

    @property
    def content_model(self) -> str:
        """Model used for document content sessions."""
        return self.models.content_model or self.active_model

    @property
    def translation_model(self) -> str:
        """Model used for translations."""
        return self.models.translation_model or self.active_model

    @property
    def llm_api_key(self) -> Optional[str]:
        """Key of the active provider; None for ollama or an unknown provider."""
        return getattr(self, f"{self.active_provider}_api_key", None)

    @property
    def llm_endpoint(self) -> Optional[str]:
        """Custom endpoint, only meaningful for ollama."""
        return self.ollama_endpoint if self.active_provider == "ollama" else None


# =============================================================================
# load_settings
# =============================================================================


# Checked in order; the first provider whose key is set wins.
PROVIDER_KEY_ENV = (
    ("openai", "OPENAI_API_KEY"),
    ("anthropic", "ANTHROPIC_API_KEY"),
    ("google", "GOOGLE_API_KEY"),
)

PROVIDER_DEFAULT_MODELS = {
    "openai": "gpt-4o",
    "anthropic": "claude-3-5-sonnet-20241022",
    "google": "gemini-1.5-pro",
    "ollama": "llama3",
}

# Environment variables that override a single schema key.
ENV_OVERRIDES = {
    "PARALLEL_COUNT": ("generation", "parallel_count"),
}


def _detect_provider_from_keys() -> str:
    """Provider of the first API key found in the environment, else ollama."""
    for provider, env_var in PROVIDER_KEY_ENV:
        if os.getenv(env_var):
            return provider
    return "ollama"


def _apply_env_overrides(config: Config) -> Config:
    for env_var, (section, key) in ENV_OVERRIDES.items():
        raw_value = os.getenv(env_var)
        if not raw_value:
            continue
        try:
            value = _check_value(section, key, raw_value)
        except ConfigError as e:
            raise ConfigError(f"{env_var}: {e}") from e
        config = replace(config, **{section: replace(getattr(config, section), **{key: value})})
    return config


@lru_cache(maxsize=1)
def load_settings() -> Config:
    """Load settings from environment variables and config file.

    Settings are cached for the lifetime of the application.
    Use load_settings.cache_clear() to reload settings.

    Raises:
        ConfigError: If the config file or an environment override holds an
            invalid value.
    """
    data_dir_str = os.getenv("WIKIGEN_DATA_DIR")
    data_dir = Path(data_dir_str).expanduser() if data_dir_str else DEFAULT_DATA_DIR

    config_file_str = os.getenv("WIKIGEN_CONFIG")
    config_file = Path(config_file_str) if config_file_str else data_dir / "config.ini"
    try:
        config_exists = config_file.exists()
    except PermissionError:
        config_exists = False
    file_config = _load_config(config_file if config_exists else None)

    active_provider = os.getenv("ACTIVE_PROVIDER") or _detect_provider_from_keys()
    active_model = os.getenv("ACTIVE_MODEL") or PROVIDER_DEFAULT_MODELS.get(
        active_provider, PROVIDER_DEFAULT_MODELS["ollama"]
    )

    config = replace(
        file_config,
        data_dir=data_dir,
        active_provider=active_provider,
        active_model=active_model,
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
        google_api_key=os.getenv("GOOGLE_API_KEY"),
        ollama_endpoint=os.getenv("OLLAMA_ENDPOINT", DEFAULT_OLLAMA_ENDPOINT),
    )
    return _apply_env_overrides(config)
