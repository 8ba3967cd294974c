"""Application configuration using Pydantic Settings."""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings are validated at startup. Missing required settings
    or invalid values will cause the application to fail fast with
    clear error messages.
    """

    # API Settings
    api_title: str = Field(default="HVAC Records Search", description="API title")
    api_version: str = Field(default="1.0.0", description="API version")

    # LLM Settings
    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model for tool selection and summarization",
    )
    openai_embedding_model: str = Field(
        default="text-embedding-3-small",
        description="OpenAI model for query embeddings",
    )
    embedding_dimension: int = Field(
        default=1536,
        ge=1,
        description="Vector dimension shared by the index and the embedding model",
    )
    llm_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Timeout in seconds for a single OpenAI request",
    )

    # Intent routing / summarization
    router_temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for the tool-selection call",
    )
    router_seed: int = Field(
        default=42,
        description="Seed for the tool-selection call",
    )
    summary_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for the summarization call",
    )
    summary_max_tokens: int = Field(
        default=800,
        ge=50,
        le=4000,
        description="Maximum tokens in the summary answer",
    )

    # Vector Database Settings
    vector_db_path: str = Field(
        default="./data/vectordb",
        description="Path to local ChromaDB storage (used when chroma_host is unset)",
    )
    chroma_host: str | None = Field(
        default=None,
        description="Remote ChromaDB host; enables the HTTP client",
    )
    chroma_port: int = Field(default=8000, ge=1, le=65535, description="Remote ChromaDB port")
    collection_name: str = Field(
        default="legacy-search",
        min_length=1,
        description="Collection holding the pre-populated record vectors",
    )
    vector_query_timeout: float = Field(
        default=15.0,
        gt=0.0,
        description="Timeout in seconds for a single vector query attempt",
    )

    # Retry Settings
    retry_max_retries: int = Field(default=5, ge=0, le=10, description="Retries after the first attempt")
    retry_base_delay: float = Field(default=1.0, ge=0.0, description="Base backoff delay in seconds")
    retry_max_delay: float = Field(default=60.0, ge=0.0, description="Backoff delay ceiling in seconds")

    # Result shaping
    max_charts: int = Field(
        default=4,
        ge=1,
        le=12,
        description="Maximum number of charts in a visualization",
    )

    # Security
    security_policy: str = Field(
        default="noop",
        description="Security filter policy (noop, tenant_scoped)",
    )
    demo_session_token: str | None = Field(
        default=None,
        description="Session token accepted by the demo authenticator (any token when unset)",
    )
    demo_user_email: str = Field(default="demo@opco.com", description="Demo principal email")
    demo_user_role: str = Field(default="admin", description="Demo principal role")
    demo_opco_code: str | None = Field(default="OPCO001", description="Demo principal OpCo")

    # Logging Settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("security_policy")
    @classmethod
    def validate_security_policy(cls, v: str) -> str:
        """Ensure security policy is known."""
        valid_policies = {"noop", "tenant_scoped"}
        v_lower = v.lower()
        if v_lower not in valid_policies:
            raise ValueError(
                f"security_policy must be one of {valid_policies}, got '{v}'"
            )
        return v_lower

    @field_validator("demo_user_role")
    @classmethod
    def validate_demo_user_role(cls, v: str) -> str:
        """Ensure demo role is one of the known roles."""
        valid_roles = {"admin", "finance_manager", "employee", "vendor_portal"}
        v_lower = v.lower()
        if v_lower not in valid_roles:
            raise ValueError(f"demo_user_role must be one of {valid_roles}, got '{v}'")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(
                f"log_level must be one of {valid_levels}, got '{v}'"
            )
        return v_upper

    @field_validator("openai_api_key")
    @classmethod
    def validate_api_key(cls, v: str | None) -> str | None:
        """Ensure API key is not empty and has reasonable format if provided."""
        if v is None:
            return v
        v = v.strip()
        if v == "":
            raise ValueError("openai_api_key cannot be empty string")
        if v == "your-openai-api-key-here":
            raise ValueError(
                "openai_api_key must be set to a valid API key, "
                "not the placeholder value"
            )
        # OpenAI keys typically start with 'sk-'
        if not v.startswith("sk-"):
            raise ValueError(
                "openai_api_key should start with 'sk-' "
                "(OpenAI API key format)"
            )
        return v

    @field_validator("chroma_host", "demo_session_token", "demo_opco_code")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Treat blank optional strings as unset."""
        if v is None or v.strip() == "":
            return None
        return v.strip()

    @model_validator(mode="after")
    def validate_retry_delays(self) -> "Settings":
        """Ensure the backoff base does not exceed its ceiling."""
        if self.retry_base_delay > self.retry_max_delay:
            raise ValueError(
                f"retry_base_delay ({self.retry_base_delay}) must be <= "
                f"retry_max_delay ({self.retry_max_delay})"
            )
        return self


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance.

    Returns:
        Settings: The application settings

    Raises:
        ValueError: If settings validation fails
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment.

    Returns:
        Settings: The reloaded application settings
    """
    global _settings
    _settings = Settings()
    return _settings
