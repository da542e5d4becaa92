"""Service configuration with environment variable loading.

Pydantic-based configuration for the Gemini analysis and chat service.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file
load_dotenv()

DEFAULT_MODEL = "gemini-3-flash-preview"


class ServiceConfig(BaseModel):
    """Configuration for the Gemini service.

    Attributes:
        api_key: API key for model access.
        model_name: Model identifier used for analysis and chat.
        temperature: Optional sampling temperature (None keeps the model default).
    """

    api_key: str = Field(
        default_factory=lambda: os.getenv("GEMINI_API_KEY", os.getenv("API_KEY", "")),
        description="API key for the Gemini API",
    )
    model_name: str = Field(
        default_factory=lambda: os.getenv("GEMINI_MODEL") or DEFAULT_MODEL,
        description="Model to use",
    )
    temperature: float | None = Field(
        default=None,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for response generation",
    )

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate that API key is provided and non-empty."""
        if not v or not v.strip():
            raise ValueError("API key required. Set GEMINI_API_KEY or API_KEY in .env")
        return v.strip()

    @field_validator("model_name")
    @classmethod
    def validate_model_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("model_name must not be blank")
        return v.strip()


def get_service_config() -> ServiceConfig:
    """Create service configuration from environment.

    Returns:
        Configured ServiceConfig instance.

    Raises:
        ValueError: If no API key is set.
    """
    return ServiceConfig()
