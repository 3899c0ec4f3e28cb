"""Configuration for the grpcurl executor."""

from collections.abc import Sequence

from pydantic import BaseModel, Field


class GrpcurlConfig(BaseModel):
    """Configuration for the grpcurl executor."""

    binary: str = "grpcurl"
    grace_period: float = Field(default=1.0, ge=0)
    extra_args: Sequence[str] = ()
