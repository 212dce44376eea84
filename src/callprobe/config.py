import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .logging_config import StructuredLogger

logger = StructuredLogger(__name__)

_ENV_PREFIX = "CALLPROBE_"


class ProbeConfig(BaseModel):
    # Span store retention
    max_spans: int = Field(10_000, ge=1)
    cleanup_threshold: float = Field(0.85, gt=0.0, le=1.0)
    eviction_ratio: float = Field(0.2, gt=0.0, lt=1.0)

    # Value capture
    max_args: int = Field(10, ge=0)
    max_value_length: int = Field(1000, ge=1)

    # Optional line-delimited JSON span log
    span_log_path: Optional[str] = None

    # Record application log calls as log spans (root logger)
    capture_logging: bool = False

    # Query server
    server_host: str = "127.0.0.1"
    server_port: int = Field(43210, ge=1, le=65535)
    app_id: str = "callprobe"

    # callprobe's own diagnostics
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    @field_validator("log_level")
    def validate_log_level(cls, v):
        level = str(v).strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level '{v}'")
        return level

    @field_validator("span_log_path", "log_dir")
    def validate_optional_path(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for name in ProbeConfig.model_fields:
        raw = os.getenv(f"{_ENV_PREFIX}{name.upper()}")
        if raw is None:
            continue
        overrides[name] = raw.strip()
    return overrides


class ConfigLoader:
    def __init__(self):
        self.config_dir = Path(os.getenv("CALLPROBE_CONFIG_DIR", ".callprobe"))
        self.config_file = self.config_dir / "probe.yaml"
        self.config: Optional[ProbeConfig] = None

    def load_config(self) -> ProbeConfig:
        """
        Loads probe.yaml (if present) and applies CALLPROBE_* environment overrides.
        ATOMIC: On failure, previous config is preserved.
        """
        raw_data: Dict[str, Any] = {}
        try:
            if self.config_file.exists():
                with open(self.config_file, "r") as f:
                    raw_data = yaml.safe_load(f) or {}
                if not isinstance(raw_data, dict):
                    raise ValueError("probe.yaml must contain a mapping")
                logger.info("Loading configuration", path=str(self.config_file))
            raw_data.update(_env_overrides())

            # Validate into temporary, never touch self.config until success
            new_config = ProbeConfig(**raw_data)
        except (yaml.YAMLError, ValidationError, ValueError) as e:
            logger.error("Configuration validation failed", error=str(e))
            if self.config is not None:
                logger.warning("Keeping previous valid configuration")
                raise ValueError(f"Invalid configuration (previous config retained): {e}")
            raise ValueError(f"Invalid configuration (no fallback): {e}")

        self.config = new_config
        logger.debug(
            "Configuration loaded",
            max_spans=new_config.max_spans,
            span_log_path=new_config.span_log_path,
        )
        return self.config

    def get_config(self) -> ProbeConfig:
        if not self.config:
            try:
                self.load_config()
            except ValueError:
                logger.warning("Falling back to default configuration")
                self.config = ProbeConfig()
        return self.config


config_loader = ConfigLoader()
