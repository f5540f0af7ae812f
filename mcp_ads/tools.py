from __future__ import annotations

import datetime
import logging
import re
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .ads_api import AdsSearchClient
from .errors import UpstreamError
from .registry import InvocationResult, Tool, ToolRegistry

log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000
MAX_PAGE_SIZE = 10000
DEFAULT_TOP_LIMIT = 10
MAX_TOP_LIMIT = 1000
DEFAULT_START = "LAST_7_DAYS"
DEFAULT_END = "TODAY"

# GAQL relative date literals
DATE_TOKENS = (
    "TODAY", "YESTERDAY", "LAST_7_DAYS", "LAST_14_DAYS", "LAST_30_DAYS",
    "LAST_BUSINESS_WEEK", "LAST_WEEK_SUN_SAT", "LAST_WEEK_MON_SUN",
    "THIS_WEEK_SUN_TODAY", "THIS_WEEK_MON_TODAY", "THIS_MONTH", "LAST_MONTH",
)
DATE_PATTERN = r"^(\d{4}-\d{2}-\d{2}|" + "|".join(DATE_TOKENS) + r")$"
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

TOP_CAMPAIGNS_GAQL = """
SELECT
  campaign.id,
  campaign.name,
  metrics.impressions,
  metrics.clicks,
  metrics.ctr,
  metrics.cost_micros
FROM campaign
WHERE segments.date BETWEEN '{start}' AND '{end}'
ORDER BY metrics.clicks DESC
LIMIT {limit}
"""


# ---------- Argument schemas ----------
def _whole_number(v: Any) -> Any:
    # JSON integers may arrive as 5.0; bools, strings and fractions may not
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ValueError("Input should be a valid integer")
    if isinstance(v, float):
        if not v.is_integer():
            raise ValueError("Input should be a whole number")
        return int(v)
    return v


class SearchArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    gaql: str = Field(..., min_length=3, strict=True, description="GAQL query string")
    page_size: int = Field(
        DEFAULT_PAGE_SIZE, alias="pageSize", ge=1, le=MAX_PAGE_SIZE,
        description="Maximum rows to return",
    )

    @field_validator("page_size", mode="before")
    @classmethod
    def _whole_page_size(cls, v: Any) -> Any:
        return _whole_number(v)


class DateRange(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    start_date: str = Field(
        ..., alias="startDate", pattern=DATE_PATTERN, strict=True,
        description=(
            "A real calendar date YYYY-MM-DD (2024-02-30 is rejected) "
            "or a relative token such as LAST_7_DAYS"
        ),
    )
    end_date: str = Field(
        ..., alias="endDate", pattern=DATE_PATTERN, strict=True,
        description=(
            "A real calendar date YYYY-MM-DD (2024-02-30 is rejected) "
            "or a relative token such as TODAY"
        ),
    )

    @field_validator("start_date", "end_date")
    @classmethod
    def _real_calendar_date(cls, v: str) -> str:
        if _ISO_DATE.match(v):
            try:
                datetime.date.fromisoformat(v)
            except ValueError as exc:
                raise ValueError(f"not a calendar date: {v}") from exc
        return v


class TopCampaignsArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    limit: int = Field(DEFAULT_TOP_LIMIT, ge=1, le=MAX_TOP_LIMIT,
                       description="Number of campaigns to return")
    date_range: DateRange = Field(
        default_factory=lambda: DateRange(startDate=DEFAULT_START, endDate=DEFAULT_END),
        alias="dateRange",
        json_schema_extra={"default": {"startDate": DEFAULT_START, "endDate": DEFAULT_END}},
    )

    @field_validator("limit", mode="before")
    @classmethod
    def _whole_limit(cls, v: Any) -> Any:
        return _whole_number(v)


# ---------- Query construction ----------
def build_top_campaigns_query(args: TopCampaignsArgs) -> str:
    # Date values are restricted by DATE_PATTERN, so no quoting can leak in.
    return TOP_CAMPAIGNS_GAQL.format(
        start=args.date_range.start_date,
        end=args.date_range.end_date,
        limit=args.limit,
    )


def _rows(data: Any) -> List[Dict[str, Any]]:
    """Rows of a search response; anything but {"results": [ {...}, ... ]} is an upstream fault."""
    if not isinstance(data, dict):
        raise UpstreamError(None, f"Unexpected response body: expected an object, got {type(data).__name__}")
    rows = data.get("results")
    if rows is None:
        return []
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        raise UpstreamError(None, "Unexpected response body: 'results' must be a list of objects")
    return rows


# ---------- Tool implementations ----------
def build_registry(ads: AdsSearchClient) -> ToolRegistry:
    """Declare every tool against the given Ads client."""

    def ads_search(args: SearchArgs) -> InvocationResult:
        rows = _rows(ads.search(args.gaql, args.page_size))
        return InvocationResult(f"Returned {len(rows)} rows.", rows)

    def ads_top_campaigns(args: TopCampaignsArgs) -> InvocationResult:
        start, end = args.date_range.start_date, args.date_range.end_date
        query = build_top_campaigns_query(args)
        log.debug("top campaigns query=%s", " ".join(query.split()))
        rows = _rows(ads.search(query, args.limit))
        return InvocationResult(f"Top {len(rows)} campaigns by clicks ({start}..{end}).", rows)

    return ToolRegistry([
        Tool(
            name="ads_search",
            title="Google Ads: GAQL Search",
            description="Run a GAQL query against Google Ads (search).",
            arguments=SearchArgs,
            handler=ads_search,
        ),
        Tool(
            name="ads_top_campaigns",
            title="Google Ads: Top Campaigns (last 7 days)",
            description="Returns top campaigns by clicks over the last 7 days.",
            arguments=TopCampaignsArgs,
            handler=ads_top_campaigns,
        ),
    ])
