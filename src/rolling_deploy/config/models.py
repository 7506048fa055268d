"""Pydantic models for configuration schema."""

from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator


DEFAULT_LOCK_NAME = "deploy"

# Max seconds to wait in the lock queue; once expired the deploy aborts
DEFAULT_LOCK_WAIT = 600

DEFAULT_DEPLOY_TIMEOUT = 30 * 60
DEFAULT_LOAD_BALANCER_TIMEOUT = 600
DEFAULT_POLL_INTERVAL = 15


class AWSConfig(BaseModel):
    """AWS credentials and region configuration."""

    profile: Optional[str] = Field(None, description="AWS profile name")
    access_key_id: Optional[str] = Field(None, description="AWS access key id")
    secret_access_key: Optional[str] = Field(None, description="AWS secret access key")
    region: Optional[str] = Field(
        None, description="Load balancer region (defaults to AWS_REGION, then us-east-1)"
    )

    @model_validator(mode="after")
    def validate_credentials(self):
        """Access keys must be supplied as a pair."""
        if bool(self.access_key_id) != bool(self.secret_access_key):
            raise ValueError("access_key_id and secret_access_key must be provided together")
        return self


class LockConfig(BaseModel):
    """Redis connection and deploy lock settings."""

    host: str = Field("localhost", min_length=1)
    port: int = Field(6379, ge=1, le=65535)
    db: int = Field(0, ge=0)
    password: Optional[str] = None
    name: str = Field(DEFAULT_LOCK_NAME, min_length=1)
    max_wait: float = Field(DEFAULT_LOCK_WAIT, ge=0, description="Seconds to wait for the lock")
    lease_timeout: Optional[float] = Field(
        None, gt=0, description="Seconds after which a held lock expires (None holds until released)"
    )


class DeployTargetConfig(BaseModel):
    """What to deploy and where."""

    stack_id: str = Field(..., min_length=1)
    layer_id: str = Field(..., min_length=1)
    app_id: str = Field(..., min_length=1)
    percent: Optional[float] = Field(
        None, gt=0, le=1, description="Fraction of online instances deployed per batch"
    )


class RollingDeployConfig(BaseModel):
    """Complete rolling deploy configuration."""

    target: DeployTargetConfig
    aws: AWSConfig = Field(default_factory=AWSConfig)
    lock: Optional[LockConfig] = None
    deploy_timeout: float = Field(DEFAULT_DEPLOY_TIMEOUT, gt=0)
    load_balancer_timeout: float = Field(DEFAULT_LOAD_BALANCER_TIMEOUT, gt=0)
    poll_interval: float = Field(DEFAULT_POLL_INTERVAL, gt=0)

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: float) -> float:
        """Keep polling from hammering the AWS APIs."""
        if v < 1:
            raise ValueError("poll_interval must be at least 1 second")
        return v
