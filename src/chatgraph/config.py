"""Configuration loading and management."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from chatgraph.models import VisualizationControls

DEFAULT_API_KEY = "${GOOGLE_AI_API_KEY}"


@dataclass
class EmbeddingConfig:
    api_key: str = ""
    model: str = "text-embedding-004"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    dimensions: int = 768
    batch_size: int = 1
    rate_limit_delay: float = 1.0  # seconds between batches
    max_retries: int = 3
    retry_base_delay: float = 1.0
    timeout_seconds: float = 30.0


@dataclass
class LoggingConfig:
    log_dir: Path = field(default_factory=lambda: Path.home() / "chatgraph" / "logs")
    level: int = logging.INFO


@dataclass
class Config:
    demo_mode: bool = False
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    visualization: VisualizationControls = field(default_factory=VisualizationControls)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def expand_env_var(value: str) -> str:
    """Expand environment variables in string (e.g. ${VAR})."""
    if value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        return os.environ.get(env_var, value)
    return value


def expand_path(path_str: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expandvars(os.path.expanduser(path_str)))


def parse_log_level(value: str | int) -> int:
    """Convert a level name such as "DEBUG" to its numeric value."""
    if isinstance(value, int):
        return value
    level = logging.getLevelName(value.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {value}")
    return level


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from YAML file."""
    if config_path is None:
        # Look for config in standard locations
        search_paths = [
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "chatgraph" / "config.yaml",
            Path("/etc/chatgraph/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = path
                break

    if config_path is None or not config_path.exists():
        return Config(embedding=EmbeddingConfig(api_key=expand_env_var(DEFAULT_API_KEY)))

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    emb_data = data.get("embedding", {})
    embedding = EmbeddingConfig(
        api_key=expand_env_var(str(emb_data.get("api_key", DEFAULT_API_KEY))),
        model=emb_data.get("model", "text-embedding-004"),
        base_url=emb_data.get("base_url", "https://generativelanguage.googleapis.com/v1beta"),
        dimensions=int(emb_data.get("dimensions", 768)),
        batch_size=int(emb_data.get("batch_size", 1)),
        rate_limit_delay=float(emb_data.get("rate_limit_delay", 1.0)),
        max_retries=int(emb_data.get("max_retries", 3)),
        retry_base_delay=float(emb_data.get("retry_base_delay", 1.0)),
        timeout_seconds=float(emb_data.get("timeout_seconds", 30.0)),
    )

    visualization = VisualizationControls.from_dict(data.get("visualization", {}))

    log_data = data.get("logging", {})
    logging_config = LoggingConfig(
        log_dir=expand_path(log_data.get("log_dir", "~/chatgraph/logs")),
        level=parse_log_level(log_data.get("level", "INFO")),
    )

    return Config(
        demo_mode=bool(data.get("demo_mode", False)),
        embedding=embedding,
        visualization=visualization,
        logging=logging_config,
    )
