"""Application settings and configuration management"""

import os
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment-specific .env file
environment = os.getenv('ENVIRONMENT', 'development')
env_file = f'.env.{environment}'
if os.path.exists(env_file):
    load_dotenv(env_file)
else:
    load_dotenv()  # Fallback to .env


class Settings(BaseSettings):
    """
    Application configuration settings using Pydantic Settings.
    
    Environment variables will automatically override default values.
    """
    
    # Vimeo API Settings
    vimeo_token: str = Field(
        default="",
        alias="VIMEO_TOKEN",
        description="Vimeo API access token sent as a Bearer credential"
    )
    vimeo_api_base_url: str = Field(
        default="https://api.vimeo.com",
        alias="VIMEO_API_BASE_URL",
        description="Base URL of the Vimeo REST API"
    )
    vimeo_cdn_base_url: str = Field(
        default="https://i.vimeocdn.com/video",
        alias="VIMEO_CDN_BASE_URL",
        description="Base URL of the Vimeo thumbnail CDN"
    )
    user_agent: str = Field(
        default="lite-vimeo-embed",
        alias="USER_AGENT",
        description="User-Agent sent with metadata requests"
    )
    
    # Upstream Timeouts and Retries
    metadata_timeout: float = Field(
        default=2.0,
        alias="METADATA_TIMEOUT",
        description="Total deadline in seconds for the metadata lookup"
    )
    image_timeout: float = Field(
        default=10.0,
        alias="IMAGE_TIMEOUT",
        description="Timeout in seconds for each network operation of the image fetch"
    )
    metadata_retry_attempts: int = Field(
        default=1,
        alias="METADATA_RETRY_ATTEMPTS",
        description="Attempts for the metadata lookup on transport errors (1 disables retry)"
    )
    retry_base_delay: float = Field(
        default=0.2,
        alias="RETRY_BASE_DELAY",
        description="Base backoff delay in seconds between metadata attempts"
    )
    
    # Server Settings
    host: str = Field(
        default="0.0.0.0",
        alias="HOST",
        description="Interface the HTTP server binds to"
    )
    port: int = Field(
        default=8000,
        alias="PORT",
        description="Port the HTTP server listens on"
    )
    
    # Development Settings
    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_file: Optional[str] = Field(
        default=None,
        alias="LOG_FILE",
        description="Optional path of a rotating JSON log file"
    )
    
    # Environment and Runtime Settings
    environment: str = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Runtime environment (development, staging, production)"
    )
    
    @field_validator('log_level')
    def validate_log_level(cls, v):
        """Validate log level is one of the standard levels"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of {valid_levels}')
        return v.upper()
    
    @field_validator('environment')
    def validate_environment(cls, v):
        """Validate environment is recognized"""
        valid_envs = ['development', 'staging', 'production']
        if v not in valid_envs:
            raise ValueError(f'environment must be one of {valid_envs}')
        return v
    
    @field_validator('metadata_timeout', 'image_timeout')
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError('timeouts must be positive')
        return v
    
    @field_validator('metadata_retry_attempts')
    def validate_retry_attempts(cls, v):
        if v < 1:
            raise ValueError('metadata_retry_attempts must be at least 1')
        return v
    
    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.environment == 'development'
    
    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.environment == 'production'
    
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_prefix": "",
        "extra": "ignore",
        "populate_by_name": True
    }


# Global settings instance
_settings = None


def get_settings() -> Settings:
    """
    Get application settings instance.
    
    Returns:
        Settings: Application configuration settings
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings

def reload_settings() -> Settings:
    """
    Force reload of settings from environment variables.
    
    Returns:
        Settings: Fresh application configuration settings
    """
    global _settings
    _settings = None
    return get_settings()
