"""Pydantic models for government support program data."""

from pydantic import BaseModel, ConfigDict, Field, model_validator

from config.pipeline_settings import DEFAULT_SUPPORT_AREA, NATIONWIDE
from models.types import ProgramID, RegionList


class GovSupportProgram(BaseModel):
    """A government funding/support opportunity from the program catalog."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: ProgramID = Field(..., min_length=1)
    title: str
    description: str = ""
    region: str = ""  # administering body (jurisdiction institution)
    geographic_regions: RegionList = Field(default_factory=list)
    support_area: str = DEFAULT_SUPPORT_AREA
    support_area_id: str | None = None
    application_deadline: str = ""
    amount: str = ""
    application_url: str | None = None
    announcement_date: str | None = None

    @model_validator(mode="after")
    def _ensure_geographic_regions(self) -> "GovSupportProgram":
        # Matching input never carries an empty region list
        if not self.geographic_regions:
            self.geographic_regions = [self.region or NATIONWIDE]
        return self

    def combined_regions(self) -> list[str]:
        """Geographic regions plus the administering-body region, deduplicated."""
        regions = list(self.geographic_regions)
        if self.region and self.region not in regions:
            regions.append(self.region)
        return regions


class SearchFilters(BaseModel):
    """Filters passed through to the program catalog."""

    keyword: str | None = None
    regions: list[str] = Field(default_factory=list)
    support_areas: list[str] = Field(default_factory=list)
    this_week_only: bool = False
    ending_soon: bool = False

    def has_client_filters(self) -> bool:
        return bool(
            self.regions or self.support_areas or self.this_week_only or self.ending_soon
        )


class SearchResponse(BaseModel):
    """One page of catalog results."""

    items: list[GovSupportProgram] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20
