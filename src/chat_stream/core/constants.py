"""
Constants and configuration for Chat Stream.
Centralizes protocol markers, limits, and user-facing strings.
Includes Pydantic validation for environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ============================================================================
# Wire Protocol
# ============================================================================

#: Marker that prefixes every event line of the chat stream.
#: Lines without it (blank separators, comments) carry no event.
SSE_DATA_PREFIX = "data: "

#: Key holding the event kind inside a frame's JSON body
EVENT_TYPE_KEY = "type"

#: Key holding the event payload inside a frame's JSON body
EVENT_DATA_KEY = "data"

# ============================================================================
# Backend Endpoints
# ============================================================================

CHAT_ENDPOINT = "/api/chat"
PERMISSION_ENDPOINT = "/api/chat/permission"
SESSION_ENDPOINT = "/api/chat/sessions/{session_id}"
SKILLS_ENDPOINT = "/api/skills"
FILES_ENDPOINT = "/api/files"

# ============================================================================
# Turn Limits
# ============================================================================

#: Maximum characters retained in the live tool-output buffer.
#: Oldest characters are dropped first once the cap is reached.
LIVE_OUTPUT_LIMIT = 5000

#: Seconds the transient "Connected" status stays visible before clearing.
STATUS_CLEAR_DELAY_SECONDS = 2.0

#: Maximum items returned for command palette and file mention lookups
PALETTE_LIMIT = 20

#: Characters of user/assistant content shown in turn log previews
LOG_PREVIEW_LENGTH = 80

# ============================================================================
# User-Facing Text
# ============================================================================

#: Appended to partial text when the user stops a turn early
STOPPED_ANNOTATION = "\n\n*(generation stopped)*"

#: Prefix for inline error annotations inside assistant text
ERROR_ANNOTATION_PREFIX = "\n\n**Error:** "

#: Error message when a failed chat response carries no usable reason
DEFAULT_SEND_ERROR = "Failed to send message"

#: Message attached to every deny decision sent to the backend
PERMISSION_DENIED_MESSAGE = "User denied permission"

#: Message attached to deny decisions produced by the client-side timeout
PERMISSION_TIMEOUT_MESSAGE = "Permission request timed out"

#: Fallback model label for the "Connected" status
DEFAULT_CONNECTED_MODEL = "claude"

CONNECTED_STATUS_TEMPLATE = "Connected ({model})"
PROGRESS_STATUS_TEMPLATE = "Running {tool_name}... ({seconds}s)"

HELP_MESSAGE = (
    "## Available Commands\n\n"
    "- **/help** - Show this help message\n"
    "- **/clear** - Clear conversation history\n"
    "- **/compact** - Compress conversation context\n"
    "- **/cost** - Show token usage statistics\n"
    "- **/doctor** - Check system health\n"
    "- **/init** - Initialize CLAUDE.md\n"
    "- **/review** - Start code review\n"
    "- **/terminal-setup** - Configure terminal\n\n"
    "**Tips:**\n"
    "- Type `@` to mention files\n"
    "- Use Shift+Enter for new line\n"
    "- Select a project folder to enable file operations"
)

COST_MESSAGE = (
    "## Token Usage\n\n"
    "Token usage tracking is available after sending messages. "
    "Check the token count displayed at the bottom of each assistant response."
)

# ============================================================================
# Modes and Commands
# ============================================================================

#: Interaction modes understood by the backend
MODE_OPTIONS: tuple[str, ...] = ("code", "plan", "ask")

DEFAULT_MODE = "code"
DEFAULT_MODEL = "sonnet"


@dataclass(frozen=True, slots=True)
class BuiltInCommand:
    """Slash command shipped with the client.

    Attributes:
        label: Name shown in the palette (without slash)
        description: Short palette description
        local: Whether the client resolves it without a network round trip
    """

    label: str
    description: str
    local: bool = False

    @property
    def value(self) -> str:
        return f"/{self.label}"


#: Order determines palette display order.
BUILT_IN_COMMANDS: tuple[BuiltInCommand, ...] = (
    BuiltInCommand("help", "Show help information", local=True),
    BuiltInCommand("clear", "Clear conversation", local=True),
    BuiltInCommand("compact", "Compress conversation context"),
    BuiltInCommand("cost", "Show token usage", local=True),
    BuiltInCommand("doctor", "Check system health"),
    BuiltInCommand("init", "Initialize CLAUDE.md"),
    BuiltInCommand("review", "Code review"),
    BuiltInCommand("terminal-setup", "Terminal configuration"),
)

# ============================================================================
# Logging Configuration
# ============================================================================

#: Maximum size in bytes for log files before rotation (10MB).
LOG_MAX_SIZE = 10 * 1024 * 1024

#: Number of turn log backups to retain during rotation.
LOG_BACKUP_COUNT_TURNS = 5

#: Number of error log backups to retain during rotation.
LOG_BACKUP_COUNT_ERRORS = 3

# ============================================================================
# Environment Settings
# ============================================================================


class Settings(BaseSettings):
    """Environment settings with validation.

    Loads from environment variables (prefix ``CHAT_STREAM_``) and a .env file.
    Validates at startup to fail fast on configuration errors.
    """

    model_config = SettingsConfigDict(
        env_prefix="CHAT_STREAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    base_url: str = Field(default="http://localhost:3000", description="Backend origin serving the chat API")
    default_mode: str = Field(default=DEFAULT_MODE, description="Mode used for new sessions")
    default_model: str = Field(default=DEFAULT_MODEL, description="Model used for new sessions")

    debug: bool = Field(default=False, description="Enable debug logging")
    http_request_logging: bool = Field(default=False, description="Enable HTTP request/response logging")
    log_dir: Path | None = Field(default=None, description="Directory for JSON log files (console only when unset)")
    enable_content_logging: bool = Field(default=False, description="Include redacted message previews in turn logs")

    read_timeout_seconds: float = Field(default=600.0, description="Read timeout while waiting on the stream")
    permission_timeout_seconds: float | None = Field(
        default=None, description="Auto-deny a pending permission after this many seconds (disabled when unset)"
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        cleaned = v.strip().rstrip("/")
        if not cleaned:
            raise ValueError("base_url cannot be empty")
        return cleaned

    @field_validator("read_timeout_seconds", "permission_timeout_seconds")
    @classmethod
    def validate_positive(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("timeouts must be positive")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses LRU cache to ensure we only load and validate settings once.
    This function will raise validation errors at startup if config is invalid.
    """
    return Settings()
