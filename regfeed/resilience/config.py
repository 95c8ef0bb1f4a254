"""Per-adapter resilience and auth configuration."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator


class AuthConfig(BaseModel):
    type: Literal["none", "api_key", "bearer", "basic"] = "none"
    credential: Optional[str] = None
    key_param: Optional[str] = None  # query parameter carrying an api_key
    header_name: Optional[str] = None  # header carrying an api_key

    @model_validator(mode="after")
    def _check_api_key_target(self) -> "AuthConfig":
        if self.type == "api_key" and not (self.key_param or self.header_name):
            raise ValueError("api_key auth needs key_param or header_name")
        return self


class RateLimitConfig(BaseModel):
    requests_per_minute: float = Field(60, gt=0)
    burst: Optional[int] = Field(None, gt=0)


class RetryConfig(BaseModel):
    max_attempts: int = Field(3, ge=1)
    base_delay: float = Field(1.0, ge=0)
    max_delay: float = Field(10.0, ge=0)
    exponential_base: float = Field(2.0, ge=1)
    jitter: bool = True


class CacheConfig(BaseModel):
    enabled: bool = True
    ttl_seconds: float = Field(300, gt=0)


class CircuitBreakerConfig(BaseModel):
    failure_threshold: int = Field(5, ge=1)
    reset_timeout_seconds: float = Field(60, gt=0)


class AdapterConfig(BaseModel):
    """Static configuration owned by exactly one adapter instance."""

    auth: AuthConfig = Field(default_factory=AuthConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    timeout_seconds: float = Field(30.0, gt=0)
    user_agent: str = "regfeed/1.0"
