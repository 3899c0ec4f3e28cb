"""Pydantic base shared by configuration and definition models."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Immutable model; settings are fixed once validated."""

    model_config = ConfigDict(frozen=True)
