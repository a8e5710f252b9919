from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from irshad import CONFIG_PATH

logger = logging.getLogger(__name__)

PUSH_CONFIG_FILE = CONFIG_PATH / "push.yaml"


# =============================================================================
# PushConfig (args/push.yaml)
# =============================================================================

class DeliverySettingsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    cooldown_seconds: float = Field(default=300, ge=0)
    ttl_seconds: int = Field(default=86400, ge=0)
    urgency: Literal["very-low", "low", "normal", "high"] = Field(default="high")
    record_size: int = Field(default=4096, ge=128)
    max_concurrency: int = Field(default=50, ge=1)
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    jwt_expiry_seconds: int = Field(default=12 * 60 * 60, ge=60, le=24 * 60 * 60)
    icon: str = Field(default="/masjid-irshad-logo.png")
    badge: str = Field(default="/masjid-irshad-logo.png")


class VapidSettingsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    public_key: str = Field(default="")
    private_key: str = Field(default="")
    subject: str = Field(default="mailto:info@masjidirshad.co.uk")


class ApiSettingsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    subscribe_rate_limit: int = Field(default=10, ge=1)
    rate_limit_window_seconds: int = Field(default=60, ge=1)
    send_token: Optional[str] = None
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class PushConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    push: DeliverySettingsConfig = Field(default_factory=DeliverySettingsConfig)
    vapid: VapidSettingsConfig = Field(default_factory=VapidSettingsConfig)
    api: ApiSettingsConfig = Field(default_factory=ApiSettingsConfig)


# =============================================================================
# load_push_config
# =============================================================================

def load_push_config(path: Path | None = None) -> PushConfig:
    yaml_path = path or PUSH_CONFIG_FILE

    try:
        if yaml_path.exists():
            with open(yaml_path) as f:
                raw = yaml.safe_load(f) or {}
        else:
            raw = {}

        return PushConfig.model_validate(raw)
    except Exception as e:
        logger.warning(f"Config validation failed for {yaml_path.name}: {e}, using defaults")
        return PushConfig()
