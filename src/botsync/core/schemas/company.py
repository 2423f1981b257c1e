"""``company-schema``: a company record as collected from a register."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

ISO_DATE = r"^\d{4}-\d{2}-\d{2}$"
JURISDICTION_CODE = r"^[a-z]{2}(_[a-z]{2})?$"


class PreviousName(BaseModel):
    model_config = ConfigDict(extra="forbid")

    company_name: str = Field(min_length=1)
    con_date: str | None = Field(default=None, pattern=ISO_DATE)
    start_date: str | None = Field(default=None, pattern=ISO_DATE)


class AllAttributes(BaseModel):
    """Free-form bag; only a handful of well-known keys are typed."""

    model_config = ConfigDict(extra="allow")

    jurisdiction_of_origin: str | None = Field(default=None, min_length=1)
    registered_agent_name: str | None = None
    registered_agent_address: str | None = None


class Officer(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    position: str | None = None
    start_date: str | None = Field(default=None, pattern=ISO_DATE)
    end_date: str | None = Field(default=None, pattern=ISO_DATE)
    other_attributes: dict[str, Any] | None = None


class Filing(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: str = Field(pattern=ISO_DATE)
    uid: str | None = None
    title: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    filing_type_name: str | None = Field(default=None, min_length=1)
    url: str | None = None

    @model_validator(mode="after")
    def _needs_some_label(self) -> Filing:
        if not (self.title or self.description or self.filing_type_name):
            raise ValueError("filing needs a title, description or filing_type_name")
        return self


class Shareholder(BaseModel):
    name: str = Field(min_length=1)


class ShareParcel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    number_of_shares: int | None = Field(default=None, ge=0)
    percentage_of_shares: float | None = Field(default=None, ge=0, le=100)
    shareholders: list[Shareholder] = Field(min_length=1)


class CompanyRecord(BaseModel):
    """Top-level company. Unknown top-level fields are tolerated."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(min_length=1)
    company_number: str = Field(min_length=1)
    jurisdiction_code: str = Field(pattern=JURISDICTION_CODE)
    registered_address: str | None = None
    branch: Literal["F", "L"] | None = None
    previous_names: list[PreviousName] | None = None
    all_attributes: AllAttributes | None = None
    officers: list[Officer] | None = None
    filings: list[Filing] | None = None
    share_parcels: list[ShareParcel] | None = None
