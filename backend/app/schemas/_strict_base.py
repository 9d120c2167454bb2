"""Strict schema baselines: unknown fields are rejected by default."""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Base for response DTOs."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Base for request bodies; a misspelled field is a 422, never silently dropped."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, str_strip_whitespace=True)
