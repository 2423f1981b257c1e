"""
``publication``: the shape an export emits for one record.

A ``company`` identity block plus a non-empty ``data`` list of dated,
sourced observations. ``licence-schema`` is the same envelope with the
observation type pinned to ``licence``.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from botsync.core.schemas.company import ISO_DATE


class CompanyIdentity(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(min_length=1)
    jurisdiction: str = Field(min_length=1)
    company_number: str | None = Field(default=None, min_length=1)


class Observation(BaseModel):
    model_config = ConfigDict(extra="forbid")

    data_type: str = Field(min_length=1)
    sample_date: str = Field(pattern=ISO_DATE)
    source_url: str = Field(min_length=1)
    confidence: Literal["HIGH", "MEDIUM", "LOW"]
    properties: dict[str, Any] = Field(default_factory=dict)


class Publication(BaseModel):
    model_config = ConfigDict(extra="forbid")

    company: CompanyIdentity
    data: list[Observation] = Field(min_length=1)


class LicenceObservation(Observation):
    data_type: Literal["licence"]


class LicencePublication(Publication):
    data: list[LicenceObservation] = Field(min_length=1)
