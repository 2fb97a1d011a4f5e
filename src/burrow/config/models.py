"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (BURROW__SECTION__KEY)
3. YAML config (<config_dir>/config.yaml)
4. Built-in defaults (this file)

Environment Variable Format:
    BURROW__<SECTION>__<KEY>=<VALUE>

Examples:
    BURROW__LOGGING__LEVEL=DEBUG
    BURROW__OLLAMA__URL=http://gpu-box:11434
    BURROW__VECTOR_SEARCH__TOP_K=20
    BURROW__DAEMON__REQUEST_TIMEOUT_SEC=10
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        BURROW__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG is verbose and may impact performance.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class ModelSpec(BaseModel):
    """A model name plus the provider that serves it."""

    name: str
    provider: Literal["ollama", "openrouter"] = "ollama"


class ModelsConfig(BaseModel):
    """Model selection.

    Env vars:
        BURROW__MODELS__EMBEDDING__NAME: Embedding model name
    """

    embedding: ModelSpec = Field(
        default_factory=lambda: ModelSpec(name="qwen3-embedding:8b"),
        description="Model used for file and query embeddings. Changing it "
        "requires a full reindex; stored vectors keep the model name.",
    )


class OllamaConfig(BaseModel):
    """Ollama endpoint.

    Env vars:
        BURROW__OLLAMA__URL: Base URL of the Ollama server
        BURROW__OLLAMA__TIMEOUT_SEC: Per-request embedding timeout
    """

    url: str = Field(default="http://localhost:11434")
    timeout_sec: float = Field(
        default=30.0,
        description="Embedding request timeout. Large models on CPU can be slow.",
    )

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class OpenRouterConfig(BaseModel):
    """OpenRouter credentials. Only consulted by the health check."""

    api_key: str = Field(default="", repr=False, exclude=True)


class VectorSearchConfig(BaseModel):
    """Semantic search and index scope.

    Env vars:
        BURROW__VECTOR_SEARCH__ENABLED: Enable/disable semantic indexing
        BURROW__VECTOR_SEARCH__TOP_K: Max search results
        BURROW__VECTOR_SEARCH__MIN_SCORE: Minimum cosine score for a hit
        BURROW__VECTOR_SEARCH__MAX_FILE_SIZE_BYTES: Skip files larger than this
    """

    enabled: bool = True
    top_k: int = Field(default=10, ge=1)
    min_score: float = Field(default=0.3, ge=-1.0, le=1.0)
    max_file_size_bytes: int = Field(
        default=1_000_000,
        ge=0,
        description="Files larger than this are not indexed.",
    )
    index_dirs: list[str] = Field(
        default_factory=lambda: ["~/Documents", "~/Projects", "~/Downloads"],
        description="Root directories to index. '~' is expanded.",
    )
    exclude_patterns: list[str] = Field(
        default_factory=lambda: [
            "node_modules",
            "target",
            "__pycache__",
            "venv",
            "snap",
            "*[Cc]ache*",
            "*.pyc",
            "*.swp",
            "*~",
            "*.tmp",
            "*.backup*",
        ],
        description="Glob patterns matched against directory and file names during the walk. "
        "Dot-prefixed names are always skipped.",
    )


class IndexerConfig(BaseModel):
    """Indexer behaviour.

    Env vars:
        BURROW__INDEXER__INTERVAL_HOURS: Period of the desktop host's background loop
        BURROW__INDEXER__MAX_CONTENT_CHARS: Characters of extracted text sent for embedding
    """

    interval_hours: float = Field(default=24.0, gt=0)
    file_extensions: list[str] = Field(
        default_factory=lambda: [
            "txt", "md", "rs", "ts", "tsx", "js", "py", "toml", "yaml", "yml", "json", "sh",
            "css", "html", "pdf", "doc", "docx", "xlsx", "xls", "pptx", "odt", "ods", "odp",
            "csv", "rtf",
        ],  # fmt: skip
        description="Allowed file extensions, without the leading dot.",
    )
    max_content_chars: int = Field(default=4096, gt=0)

    @field_validator("file_extensions")
    @classmethod
    def normalize_extensions(cls, v: list[str]) -> list[str]:
        return [ext.lower().lstrip(".") for ext in v if ext.strip(". ")]


class DaemonConfig(BaseModel):
    """Daemon client behaviour.

    Env vars:
        BURROW__DAEMON__REQUEST_TIMEOUT_SEC: Connect + round-trip timeout per request
        BURROW__DAEMON__POLL_INTERVAL_SEC: Progress polling interval
        BURROW__DAEMON__MAX_POLL_FAILURES: Consecutive poll failures before giving up
    """

    request_timeout_sec: float = Field(default=5.0, gt=0)
    poll_interval_sec: float = Field(default=0.2, gt=0)
    max_poll_failures: int = Field(
        default=10,
        ge=1,
        description="Consecutive transport failures while polling before the CLI "
        "reports the daemon as unreachable.",
    )
    startup_timeout_sec: float = Field(
        default=5.0,
        gt=0,
        description="How long 'daemon start --background' waits for the socket to answer.",
    )


class TimeoutsConfig(BaseModel):
    """Timeout configuration for daemon shutdown."""

    server_stop_sec: float = Field(
        default=5.0,
        description="Graceful shutdown timeout for the background indexer.",
    )
    force_exit_sec: float = Field(
        default=3.0,
        description="Force exit timeout after graceful shutdown fails.",
    )


class BurrowConfig(BaseModel):
    """Root configuration for Burrow.

    All settings can be configured via:
    1. Environment variables: BURROW__SECTION__KEY
    2. YAML config file (<config_dir>/config.yaml)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    openrouter: OpenRouterConfig = Field(default_factory=OpenRouterConfig)
    vector_search: VectorSearchConfig = Field(default_factory=VectorSearchConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    daemon: DaemonConfig = Field(default_factory=DaemonConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
