"""Configuration for the HTTP JSON executor."""

from typing import Literal

from pydantic import BaseModel


class HttpConfig(BaseModel):
    """Configuration for the HTTP JSON executor.

    Calls are POSTed to ``{scheme}://{address}{base_path}/{endpoint}``.
    """

    scheme: Literal["http", "https"] = "http"
    base_path: str = ""
    method: Literal["POST", "PUT"] = "POST"
