"""Configuration settings for the App-Factory system."""

# Load .env into os.environ so provider SDKs (e.g. ANTHROPIC_API_KEY) see it
try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass

from pydantic_settings import BaseSettings
from pydantic import Field
from pathlib import Path


class Settings(BaseSettings):
    """Global settings for App-Factory.

    Settings can be overridden via environment variables with APP_FACTORY_ prefix.
    Example: APP_FACTORY_MAX_RETRIES=5
    """

    # Model config
    default_provider: str = Field(
        default="anthropic",
        description="LLM provider used for code generation"
    )
    default_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Default model for generation calls"
    )
    max_output_tokens: int = Field(
        default=16000,
        description="Maximum output tokens per generation call"
    )
    generation_timeout_seconds: float = Field(
        default=300.0,
        description="Hard wall-clock ceiling for a single generation call"
    )

    # Token pricing (per 1M tokens)
    input_token_cost_per_million: float = Field(
        default=3.00,
        description="Cost per 1M input tokens"
    )
    output_token_cost_per_million: float = Field(
        default=15.00,
        description="Cost per 1M output tokens"
    )
    margin_multiplier: float = Field(
        default=2.5,
        gt=0,
        description="Multiplier applied on top of raw model cost"
    )
    minimum_price_usd: float = Field(
        default=5.00,
        ge=0,
        description="Price floor for any build"
    )
    budget_warning_ratio: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Fraction of the projected budget that triggers a warning"
    )

    # Retry / recovery
    max_retries: int = Field(
        default=3,
        ge=0,
        description="Maximum retries of a single iteration"
    )
    retry_base_delay_ms: int = Field(
        default=1000,
        description="Base delay for exponential backoff"
    )
    retry_max_delay_ms: int = Field(
        default=30000,
        description="Upper bound for exponential backoff"
    )
    recovery_ttl_seconds: int = Field(
        default=3600,
        description="Age after which a persisted recovery snapshot expires"
    )
    recovery_dir: str = Field(
        default="./.app_factory/recovery",
        description="Directory holding recovery snapshots keyed by build id"
    )

    # Parser / merger tunables
    merge_length_delta_threshold: int = Field(
        default=50,
        description="Length delta above which a re-emitted file replaces the old one"
    )
    merge_prefix_match_chars: int = Field(
        default=100,
        description="Leading characters of new content searched for in old content"
    )
    min_file_content_length: int = Field(
        default=5,
        description="Files shorter than this are never merged"
    )
    min_salvaged_content_length: int = Field(
        default=10,
        description="Minimum content length for files salvaged without an end marker"
    )

    # Prompt context bounding
    max_context_files: int = Field(
        default=20,
        description="Existing files listed in early iteration prompts"
    )
    late_max_context_files: int = Field(
        default=10,
        description="Existing files listed once iterations pass late_iteration_threshold"
    )
    late_iteration_threshold: int = Field(
        default=5,
        description="Iteration after which fewer files are listed in context"
    )
    truncate_iteration_threshold: int = Field(
        default=7,
        description="Iteration after which file excerpts are truncated"
    )
    context_excerpt_chars: int = Field(
        default=1200,
        description="Characters of each file excerpt included in context"
    )
    truncated_excerpt_chars: int = Field(
        default=300,
        description="Characters of each file excerpt once truncation applies"
    )

    # Paths
    output_dir: str = Field(
        default="./outputs",
        description="Final deliverables directory"
    )

    # API settings (env: APP_FACTORY_<KEY> or standard env var)
    anthropic_api_key: str = Field(
        default="",
        description="Anthropic API key (env: APP_FACTORY_ANTHROPIC_API_KEY)",
    )
    openai_api_key: str = Field(
        default="",
        description="OpenAI API key (env: APP_FACTORY_OPENAI_API_KEY)",
    )
    api_timeout_seconds: int = Field(
        default=120,
        description="Timeout for payment and source-control HTTP calls"
    )

    # Integrations
    stripe_api_key: str = Field(
        default="",
        description="Stripe secret key used to verify checkout sessions",
    )
    stripe_api_url: str = Field(
        default="https://api.stripe.com/v1",
        description="Stripe REST API base URL",
    )
    github_token: str = Field(
        default="",
        description="GitHub token used for iteration sync",
    )
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL",
    )
    github_branch: str = Field(
        default="main",
        description="Branch that receives iteration commits",
    )

    model_config = {
        "env_prefix": "APP_FACTORY_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",  # ignore extra env vars (e.g. OPENAI_API_KEY) not in schema
    }

    def get_output_path(self) -> Path:
        """Get output path as Path object."""
        return Path(self.output_dir)

    def get_recovery_path(self) -> Path:
        """Get recovery snapshot directory as Path object."""
        return Path(self.recovery_dir)

    def calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        """Calculate raw model cost in USD for given token usage."""
        input_cost = (input_tokens / 1_000_000) * self.input_token_cost_per_million
        output_cost = (output_tokens / 1_000_000) * self.output_token_cost_per_million
        return input_cost + output_cost


# Create singleton instance
settings = Settings()
