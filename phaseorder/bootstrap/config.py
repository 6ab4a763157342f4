"""
bootstrap/config.py - Application configuration

Provides configuration loading from files, environment variables, and defaults.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from pathlib import Path
import os
import json
import logging

logger = logging.getLogger("bootstrap.config")

DEFAULT_TEMPLATE_PROJECT_ID = "00000000-0000-0000-0000-000000000001"


@dataclass
class EngineConfig:
    """Reconciliation and planning settings."""

    # Project whose standard phases define the template
    template_project_id: str = DEFAULT_TEMPLATE_PROJECT_ID

    # Custom inserts never land in the first N slots
    reserved_leading_slots: int = 2

    new_phase_name: str = "New Phase"

    # Transactions and state transitions kept per project
    history_limit: int = 100

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            template_project_id=os.getenv("PHASEORDER_TEMPLATE_PROJECT_ID", DEFAULT_TEMPLATE_PROJECT_ID),
            reserved_leading_slots=int(os.getenv("PHASEORDER_RESERVED_LEADING_SLOTS", "2")),
            new_phase_name=os.getenv("PHASEORDER_NEW_PHASE_NAME", "New Phase"),
            history_limit=int(os.getenv("PHASEORDER_HISTORY_LIMIT", "100")),
        )


@dataclass
class StorageConfig:
    """Phase store configuration."""

    backend: str = "memory"             # "memory" or "json"
    base_dir: str = "./storage/phases"

    @classmethod
    def from_env(cls) -> "StorageConfig":
        return cls(
            backend=os.getenv("PHASEORDER_STORAGE_BACKEND", "memory"),
            base_dir=os.getenv("PHASEORDER_STORAGE_DIR", "./storage/phases"),
        )


@dataclass
class APIConfig:
    """API server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    enable_docs: bool = True
    docs_url: str = "/docs"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "APIConfig":
        cors = os.getenv("PHASEORDER_API_CORS_ORIGINS", "*")
        return cls(
            host=os.getenv("PHASEORDER_API_HOST", "0.0.0.0"),
            port=int(os.getenv("PHASEORDER_API_PORT", "8000")),
            enable_docs=os.getenv("PHASEORDER_API_ENABLE_DOCS", "true").lower() == "true",
            docs_url=os.getenv("PHASEORDER_API_DOCS_URL", "/docs"),
            cors_origins=cors.split(",") if cors else ["*"],
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Optional[str] = None
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        return cls(
            level=os.getenv("PHASEORDER_LOG_LEVEL", "INFO"),
            format=os.getenv("PHASEORDER_LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            log_file=os.getenv("PHASEORDER_LOG_FILE"),
            json_logs=os.getenv("PHASEORDER_JSON_LOGS", "false").lower() == "true",
        )


@dataclass
class PhaseOrderConfig:
    """Root configuration."""

    environment: str = "development"
    debug: bool = False
    version: str = "0.1.0"

    engine: EngineConfig = field(default_factory=EngineConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    api: APIConfig = field(default_factory=APIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "PhaseOrderConfig":
        """Create configuration from environment variables."""
        return cls(
            environment=os.getenv("PHASEORDER_ENVIRONMENT", "development"),
            debug=os.getenv("PHASEORDER_DEBUG", "false").lower() == "true",
            engine=EngineConfig.from_env(),
            storage=StorageConfig.from_env(),
            api=APIConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def from_file(cls, filepath: str) -> "PhaseOrderConfig":
        """Load configuration from JSON file."""
        path = Path(filepath)
        if not path.exists():
            logger.warning(f"Config file not found: {filepath}, using defaults")
            return cls.from_env()

        with open(path) as f:
            data = json.load(f)

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "PhaseOrderConfig":
        """Overlay dictionary values on the environment configuration."""
        config = cls.from_env()

        if "environment" in data:
            config.environment = data["environment"]
        if "debug" in data:
            config.debug = data["debug"]

        for section in ("engine", "storage", "api", "logging"):
            target = getattr(config, section)
            for key, value in data.get(section, {}).items():
                if hasattr(target, key):
                    setattr(target, key, value)
                else:
                    logger.warning(f"Ignoring unknown config key: {section}.{key}")

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Serialize config to dictionary."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "version": self.version,
            "engine": {
                "template_project_id": self.engine.template_project_id,
                "reserved_leading_slots": self.engine.reserved_leading_slots,
                "new_phase_name": self.engine.new_phase_name,
                "history_limit": self.engine.history_limit,
            },
            "storage": {
                "backend": self.storage.backend,
                "base_dir": self.storage.base_dir,
            },
            "api": {
                "host": self.api.host,
                "port": self.api.port,
            },
            "logging": {
                "level": self.logging.level,
                "log_file": self.logging.log_file,
                "json_logs": self.logging.json_logs,
            },
        }


# Global config instance
_config: Optional[PhaseOrderConfig] = None


def load_config(filepath: str = None) -> PhaseOrderConfig:
    """
    Load configuration from file or environment.

    Args:
        filepath: Optional path to JSON config file

    Returns:
        PhaseOrderConfig instance
    """
    global _config

    if filepath:
        _config = PhaseOrderConfig.from_file(filepath)
    else:
        default_paths = [
            "./phaseorder.json",
            "./config/phaseorder.json",
            os.path.expanduser("~/.phaseorder/config.json"),
        ]

        for path in default_paths:
            if Path(path).exists():
                logger.info(f"Loading config from: {path}")
                _config = PhaseOrderConfig.from_file(path)
                return _config

        _config = PhaseOrderConfig.from_env()

    logger.info(f"Configuration loaded: environment={_config.environment}")
    return _config


def get_config() -> PhaseOrderConfig:
    """Get current configuration, loading if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config
