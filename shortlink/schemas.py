"""Pydantic schemas for request/response validation in the shortlink API.

Schema Hierarchy
=================
::
    ShortenRequest (Input)
    ├─ long_url: str (required, non-empty, not validated as a URI)
    └─ diy_domain: str | None (optional domain for the returned URL)

    ShortenResponse (Output)
    └─ short_url: str

    StatsResponse (Output)
    ├─ short_url: str
    ├─ long_url: str
    └─ visit_count: int

Key Behaviours
===============
- ``long_url`` is passed through verbatim; only presence is enforced.
- An empty ``diy_domain`` is treated as absent.
"""

from pydantic import BaseModel, Field, field_validator

from shortlink.service import LinkStats

__all__ = ["ShortenRequest", "ShortenResponse", "StatsResponse"]


class ShortenRequest(BaseModel):
    long_url: str = Field(..., min_length=1, description="URL to shorten, e.g. 'https://example.com/page'")
    diy_domain: str | None = Field(None, description="Domain used instead of the configured website")

    @field_validator("diy_domain")
    @classmethod
    def blank_domain_is_none(cls, v: str | None) -> str | None:
        return v or None


class ShortenResponse(BaseModel):
    short_url: str


class StatsResponse(BaseModel):
    short_url: str
    long_url: str
    visit_count: int

    @classmethod
    def from_stats(cls, stats: LinkStats) -> "StatsResponse":
        return cls(short_url=stats.short_url, long_url=stats.long_url, visit_count=stats.visits)
