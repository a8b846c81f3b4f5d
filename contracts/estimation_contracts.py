"""Estimation contracts for complexity analysis, token projection, and pricing."""

from pydantic import BaseModel, Field, model_validator
from enum import Enum


class ComplexityTier(str, Enum):
    """Ordered complexity buckets driving iteration count and price."""
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"
    ENTERPRISE = "enterprise"


class DetectedFeatures(BaseModel):
    """Feature flags and counts detected in a requirements document."""
    authentication: bool = Field(False, description="Login, signup, sessions, OAuth")
    database: bool = Field(False, description="Persistence, CRUD, hosted databases")
    payments: bool = Field(False, description="Checkout, billing, subscriptions")
    file_upload: bool = Field(False, description="Uploads, media, attachments")
    realtime: bool = Field(False, description="Websockets, live updates, chat")
    dashboard: bool = Field(False, description="Dashboards, analytics, charts")
    api_integration_count: int = Field(0, ge=0, description="Mentions of APIs and integrations")
    form_count: int = Field(0, ge=0, description="Mentions of forms and inputs")


class ComplexityAnalysis(BaseModel):
    """Deterministic analysis of a requirements document."""
    page_count: int = Field(..., ge=0, description="Estimated number of pages/routes")
    component_count: int = Field(..., ge=0, description="Estimated number of components")
    features: DetectedFeatures = Field(default_factory=DetectedFeatures)
    estimated_lines_of_code: int = Field(..., ge=0)
    complexity_tier: ComplexityTier = Field(...)


class TokenBreakdown(BaseModel):
    """How the projected tokens were derived."""
    prd_tokens: int = Field(0, ge=0, description="Requirements context tokens per call")
    code_generation_tokens: float = Field(0.0, ge=0)
    tokens_per_iteration: float = Field(0.0, ge=0)


class TokenEstimate(BaseModel):
    """Projected token usage for a whole build."""
    input_tokens: int = Field(..., ge=0)
    output_tokens: int = Field(..., ge=0)
    total_tokens: int = Field(0, ge=0)
    iteration_count: int = Field(..., ge=1, description="Authoritative loop bound for the build")
    breakdown: TokenBreakdown = Field(default_factory=TokenBreakdown)

    @model_validator(mode='after')
    def validate_total(self) -> 'TokenEstimate':
        """Keep total_tokens consistent with its parts."""
        expected = self.input_tokens + self.output_tokens
        if self.total_tokens != expected:
            object.__setattr__(self, 'total_tokens', expected)
        return self


class PricingEstimate(BaseModel):
    """Price quoted to the user before payment."""
    input_cost: float = Field(..., ge=0)
    output_cost: float = Field(..., ge=0)
    base_cost: float = Field(0.0, ge=0, description="Raw model cost")
    margin: float = Field(0.0, ge=0)
    total_cost: float = Field(..., ge=0, description="max(floor, base_cost * margin multiplier)")


class CostEstimate(BaseModel):
    """Full estimate returned by the estimator in one call."""
    analysis: ComplexityAnalysis
    tokens: TokenEstimate
    pricing: PricingEstimate
    label: str = ""
