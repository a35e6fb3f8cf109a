"""Pydantic request/response models for API endpoints."""

from pydantic import BaseModel


class ChooseBody(BaseModel):
    index: int


class SaveResult(BaseModel):
    ok: bool


class CheckConnectionBody(BaseModel):
    provider_url: str
    api_key: str = ""
