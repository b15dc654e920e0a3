# Gateway settings, loaded from the environment / .env
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from enum import Enum
from typing import Dict, List, Optional


class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class ZerodhaSettings(BaseModel):
    api_key: str = ""
    api_secret: str = ""
    # Passed straight to KiteConnect; None keeps the SDK defaults
    root_url: Optional[str] = None
    timeout_seconds: Optional[int] = 7
    debug: bool = False


class GatewaySettings(BaseModel):
    """Defaults applied to commands forwarded to the broker"""
    order_tag: str = "gateway"
    default_product: str = "CNC"
    default_exchange: str = "NSE"
    default_order_type: str = "LIMIT"
    default_validity: str = "DAY"
    default_variety: str = "regular"
    default_margin_segment: str = "equity"
    risk_margin_segment: str = "equity"
    # trading symbol -> sector; empty means sector exposure is not reported
    sector_map: Dict[str, str] = Field(default_factory=dict)

    @field_validator("order_tag")
    @classmethod
    def validate_order_tag(cls, v):
        """Kite rejects tags longer than 20 characters"""
        if len(v) > 20:
            raise ValueError("order_tag must be at most 20 characters")
        return v


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_format: bool = False
    # Redaction
    redact_keys: list[str] = [
        "authorization", "access_token", "public_token", "request_token",
        "api_key", "api_secret", "password", "secret", "token",
    ]


class APISettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    @field_validator('cors_origins')
    def validate_cors_origins(cls, v):
        """Validate CORS origins configuration"""
        if "*" in v and len(v) > 1:
            raise ValueError("Cannot mix '*' with specific origins")
        return v


class Settings(BaseSettings):
    """Main application settings, loaded from environment variables"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

    app_name: str = "Kite Gateway"
    version: str = "0.3.0"
    environment: Environment = Environment.DEVELOPMENT

    zerodha: ZerodhaSettings = ZerodhaSettings()
    gateway: GatewaySettings = GatewaySettings()
    logging: LoggingSettings = LoggingSettings()
    api: APISettings = APISettings()

    def has_api_credentials(self) -> bool:
        """True when both the API key and the API secret are configured."""
        return bool(self.zerodha.api_key and self.zerodha.api_secret)


# No global settings instance - use dependency injection instead
