"""
inboxrelay Configuration

Environment variable handling and file location defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


# Environment variable names
ENV_INBOX_DIR = "INBOXRELAY_INBOX_DIR"
ENV_COMMAND_FILE = "INBOXRELAY_COMMAND_FILE"
ENV_OUTPUT_DIR = "INBOXRELAY_OUTPUT_DIR"
ENV_FALLBACK_OUTPUT = "INBOXRELAY_FALLBACK_OUTPUT"
ENV_LOG_FILE = "INBOXRELAY_LOG_FILE"
ENV_DEFAULT_ATTACHMENT = "INBOXRELAY_DEFAULT_ATTACHMENT"
ENV_STOP_ON_SHUTDOWN = "INBOXRELAY_STOP_ON_SHUTDOWN"

DEFAULT_INBOX_DIR = Path.home() / ".inboxrelay"
DEFAULT_COMMAND_FILE = "command.txt"
DEFAULT_OUTPUT_FILE = "output.txt"
DEFAULT_LOG_FILE = "error.log"
DEFAULT_FALLBACK_OUTPUT = Path.home() / "Desktop" / "inboxrelay_output.txt"

_TRUTHY = {"1", "true", "yes", "on"}


def _expand(value: str) -> Path:
    return Path(os.path.expanduser(value))


@dataclass
class RelayConfig:
    """
    Configuration for one bridge instance.

    Attributes:
        inbox_dir: Directory holding the watched command file
        command_file: Name of the watched file inside inbox_dir
        output_dir: Directory that receives response text (defaults to inbox_dir)
        output_file: Name of the response file inside output_dir
        fallback_output: Per-user file used when output_dir cannot be written
        log_file: Diagnostic log (defaults to inbox_dir/error.log)
        default_attachment: Reference sent when a command names no files
        debounce_seconds: Minimum gap between two processed file events
        read_attempts: Attempts to read the command file per event
        read_retry_delay: Seconds between read attempts
        poll_interval: How often the supervisor checks for cancellation
        event_queue_size: Bound on pending file events
        stop_on_shutdown: Stop the bridge when the peer sends "shutdown"
    """
    inbox_dir: Path = DEFAULT_INBOX_DIR
    command_file: str = DEFAULT_COMMAND_FILE
    output_dir: Optional[Path] = None
    output_file: str = DEFAULT_OUTPUT_FILE
    fallback_output: Path = DEFAULT_FALLBACK_OUTPUT
    log_file: Optional[Path] = None
    default_attachment: Optional[Path] = None
    debounce_seconds: float = 0.5
    read_attempts: int = 5
    read_retry_delay: float = 0.2
    poll_interval: float = 1.0
    event_queue_size: int = 64
    stop_on_shutdown: bool = False

    def __post_init__(self):
        self.inbox_dir = Path(self.inbox_dir)
        self.output_dir = Path(self.output_dir) if self.output_dir is not None else self.inbox_dir
        self.fallback_output = Path(self.fallback_output)
        if self.log_file is None:
            self.log_file = self.inbox_dir / DEFAULT_LOG_FILE
        else:
            self.log_file = Path(self.log_file)
        if self.default_attachment is not None:
            self.default_attachment = Path(self.default_attachment)

    @property
    def command_path(self) -> Path:
        """Full path of the watched file."""
        return self.inbox_dir / self.command_file

    @property
    def output_path(self) -> Path:
        """Full path of the primary response file."""
        return self.output_dir / self.output_file

    @classmethod
    def from_environment(cls) -> "RelayConfig":
        """
        Load configuration from environment variables.

        Environment Variables:
            INBOXRELAY_INBOX_DIR: Directory holding the command file
            INBOXRELAY_COMMAND_FILE: Name of the command file
            INBOXRELAY_OUTPUT_DIR: Directory for output.txt
            INBOXRELAY_FALLBACK_OUTPUT: Fallback response file
            INBOXRELAY_LOG_FILE: Diagnostic log file
            INBOXRELAY_DEFAULT_ATTACHMENT: File sent when a command names none
            INBOXRELAY_STOP_ON_SHUTDOWN: Stop when the peer says shutdown (1/true/yes)
        """
        kwargs = {}

        if env_dir := os.environ.get(ENV_INBOX_DIR):
            kwargs["inbox_dir"] = _expand(env_dir)
        if env_name := os.environ.get(ENV_COMMAND_FILE):
            kwargs["command_file"] = env_name
        if env_out := os.environ.get(ENV_OUTPUT_DIR):
            kwargs["output_dir"] = _expand(env_out)
        if env_fallback := os.environ.get(ENV_FALLBACK_OUTPUT):
            kwargs["fallback_output"] = _expand(env_fallback)
        if env_log := os.environ.get(ENV_LOG_FILE):
            kwargs["log_file"] = _expand(env_log)
        if env_attach := os.environ.get(ENV_DEFAULT_ATTACHMENT):
            kwargs["default_attachment"] = _expand(env_attach)

        stop = os.environ.get(ENV_STOP_ON_SHUTDOWN, "")
        kwargs["stop_on_shutdown"] = stop.strip().lower() in _TRUTHY

        return cls(**kwargs)


# Global singleton
_config: Optional[RelayConfig] = None


def get_config() -> RelayConfig:
    """
    Get the global configuration singleton.

    Returns:
        RelayConfig instance loaded from environment
    """
    global _config
    if _config is None:
        _config = RelayConfig.from_environment()
    return _config


def reset_config() -> None:
    """
    Reset the global configuration singleton.

    Useful for testing or when environment variables change.
    """
    global _config
    _config = None


def set_config(config: RelayConfig) -> None:
    """
    Set the global configuration singleton.

    Args:
        config: Configuration to use
    """
    global _config
    _config = config
