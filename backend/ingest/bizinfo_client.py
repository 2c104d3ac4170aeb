"""
Program source adapter for the Bizinfo (기업마당) support program catalog.

Fetches program listings, normalizes the upstream records into
GovSupportProgram models and applies the filters the catalog cannot apply
server-side.
"""

import re
import time
from datetime import date, timedelta
from typing import Any, Optional

import requests

from config.pipeline_settings import (
    BIZINFO_API_KEY,
    BIZINFO_API_URL,
    BIZINFO_HOST,
    DEFAULT_SUPPORT_AREA,
    ENDING_SOON_DAYS,
    FETCH_MAX_RETRIES,
    FETCH_PAGE_SIZE,
    KOREAN_REGIONS,
    NATIONWIDE,
    REQUEST_TIMEOUT_SECONDS,
    SUPPORT_AREA_CODES,
    SUPPORT_AREA_NAMES,
    THIS_WEEK_DAYS,
)
from models.program import GovSupportProgram, SearchFilters, SearchResponse
from shared.utils import clean_html_text, parse_date, parse_deadline

_DEADLINE_PATTERN = re.compile(r"~\s*(\d{8})")


class ProgramSourceError(Exception):
    """The program catalog could not be reached or returned unusable data."""


class BizinfoClient:
    """Fetches and normalizes government support programs from Bizinfo"""

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        max_retries: int = FETCH_MAX_RETRIES,
        timeout: int = REQUEST_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key if api_key is not None else BIZINFO_API_KEY
        self.api_url = api_url or BIZINFO_API_URL
        self.max_retries = max_retries
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/json",
                "User-Agent": "Mozilla/5.0",
                "Referer": f"{BIZINFO_HOST}/",
            }
        )

    def search_support_programs(
        self,
        filters: Optional[SearchFilters] = None,
        page: int = 1,
        page_size: int = 20,
        today: Optional[date] = None,
    ) -> SearchResponse:
        """
        Search for government support programs.

        Args:
            filters: Keyword/region/support-area/this-week/ending-soon filters
            page: 1-based page number
            page_size: Items per page
            today: Reference date for the time-window filters (defaults to today)

        Returns:
            SearchResponse with normalized programs

        Raises:
            ProgramSourceError: If the catalog stays unavailable after retries
                or returns an unrecognized payload
        """
        filters = filters or SearchFilters()
        page = max(1, page)

        # The keyword is applied server-side; only client filters need over-fetching
        has_filters = filters.has_client_filters()
        api_page_size = min(FETCH_PAGE_SIZE, page_size * 3) if has_filters else page_size
        api_page = 1 if has_filters else page

        params = self._build_params(filters, api_page, api_page_size)
        data = self._request_json(params)
        items, total = _extract_items(data)

        programs = []
        for item in items:
            program = normalize_program(item)
            if program is not None:
                programs.append(program)

        if not filters.has_client_filters():
            return SearchResponse(
                items=programs, total=total, page=page, page_size=page_size
            )

        filtered = apply_client_filters(programs, filters, today=today)
        start = (page - 1) * page_size
        return SearchResponse(
            items=filtered[start : start + page_size],
            total=len(filtered),
            page=page,
            page_size=page_size,
        )

    def _build_params(
        self, filters: SearchFilters, api_page: int, api_page_size: int
    ) -> dict[str, str]:
        params = {
            "crtfcKey": self.api_key,
            "dataType": "json",
            "pageUnit": str(api_page_size),
            "pageIndex": str(api_page),
        }

        if filters.keyword and filters.keyword.strip():
            params["searchKrwd"] = filters.keyword.strip()

        if filters.support_areas:
            codes = [
                SUPPORT_AREA_CODES[area]
                for area in filters.support_areas
                if area in SUPPORT_AREA_CODES
            ]
            if codes:
                params["pldirSportRealmLclasCode"] = ",".join(codes)

        if filters.regions:
            params["hashtags"] = ",".join(f"#{region}" for region in filters.regions)
            params["areaNm"] = ",".join(filters.regions)

        return params

    def _request_json(self, params: dict[str, str]) -> Any:
        """GET the catalog endpoint, retrying transient failures."""
        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.get(
                    self.api_url, params=params, timeout=self.timeout
                )
                response.raise_for_status()

                text = response.text
                content_type = response.headers.get("Content-Type", "")
                if "text/html" in content_type or text.lstrip().startswith("<"):
                    raise ProgramSourceError(
                        f"Catalog returned invalid content type. Expected JSON, got {content_type or 'HTML'}"
                    )
                return response.json()

            except requests.Timeout:
                last_error = ProgramSourceError(
                    f"Catalog request timed out after {self.timeout} seconds"
                )
            except (requests.RequestException, ValueError, ProgramSourceError) as e:
                last_error = e

            if attempt < self.max_retries:
                print(f"  ⚠ Catalog fetch failed (attempt {attempt + 1}): {last_error}")
                time.sleep(0.5 * (attempt + 1))

        print(f"  ✗ Could not fetch catalog: {last_error}")
        if isinstance(last_error, ProgramSourceError):
            raise last_error
        raise ProgramSourceError(str(last_error)) from last_error


def _extract_items(data: Any) -> tuple[list[dict[str, Any]], int]:
    """Pull the raw item list and total count out of a catalog payload."""
    if not isinstance(data, dict) or "jsonArray" not in data:
        raise ProgramSourceError("Catalog returned an unexpected data structure")

    programs = data["jsonArray"]

    if isinstance(programs, list):
        items = programs
        total = len(items)
        if items and items[0].get("totCnt"):
            try:
                total = int(items[0]["totCnt"])
            except (TypeError, ValueError):
                pass
        return items, total

    body = programs.get("response", {}).get("body") if isinstance(programs, dict) else None
    if body is None:
        raise ProgramSourceError("Catalog returned an unexpected data structure")

    raw_items = body.get("items") or []
    items = raw_items if isinstance(raw_items, list) else [raw_items]
    try:
        total = int(body.get("totalCount") or len(items))
    except (TypeError, ValueError):
        total = len(items)
    return items, total


def extract_regions_from_hashtags(hashtags: str) -> list[str]:
    """Region short names mentioned in a hashtag string; nationwide if none."""
    regions = [region for region in KOREAN_REGIONS if region in hashtags]
    return regions or [NATIONWIDE]


def parse_application_deadline(period: str | None) -> str:
    """End date of a 'YYYYMMDD ~ YYYYMMDD' period as YYYY-MM-DD, else the sentinel."""
    if period:
        match = _DEADLINE_PATTERN.search(period)
        if match:
            raw = match.group(1)
            return f"{raw[:4]}-{raw[4:6]}-{raw[6:8]}"
        stripped = period.strip()
        if stripped and not any(ch.isdigit() for ch in stripped):
            # "상시", "예산 소진시" and similar pass through unchanged
            return stripped
    return "정보 없음"


def normalize_program(item: dict[str, Any]) -> Optional[GovSupportProgram]:
    """
    Map one upstream record to a GovSupportProgram.

    Records without a program id are skipped: the id keys the sent ledger, so
    a made-up id would defeat duplicate suppression.
    """
    program_id = item.get("pblancId")
    if not program_id:
        print(f"  ⚠ Skipping catalog item without id: {item.get('pblancNm', '?')}")
        return None

    region = item.get("jrsdInsttNm") or NATIONWIDE
    hashtag_regions = (
        extract_regions_from_hashtags(item["hashtags"]) if item.get("hashtags") else []
    )
    institution_region = region.replace("특별", "") if "특별" in region else region
    geographic_regions = list(dict.fromkeys(hashtag_regions + [institution_region]))

    support_area_id = item.get("pldirSportRealmLclasCode")
    support_area = (
        item.get("pldirSportRealmLclasCodeNm")
        or SUPPORT_AREA_NAMES.get(support_area_id or "")
        or DEFAULT_SUPPORT_AREA
    )

    detail_path = item.get("pblancUrl")
    if detail_path and not detail_path.startswith("http"):
        detail_path = f"{BIZINFO_HOST}{detail_path}"

    created = item.get("creatPnttm")

    return GovSupportProgram(
        id=program_id,
        title=item.get("pblancNm") or "제목 없음",
        description=clean_html_text(item.get("bsnsSumryCn")) or "내용 없음",
        region=region,
        geographic_regions=[r for r in geographic_regions if r] or [NATIONWIDE],
        support_area=support_area,
        support_area_id=support_area_id or SUPPORT_AREA_CODES.get(support_area),
        application_deadline=parse_application_deadline(item.get("reqstBeginEndDe")),
        amount=item.get("sportAmount") or "지원금액 정보 없음",
        application_url=detail_path or None,
        announcement_date=created.split(" ")[0] if created else None,
    )


def is_ending_soon(
    program: GovSupportProgram, today: date, days: int = ENDING_SOON_DAYS
) -> bool:
    """Deadline falls within [today, today + days]; sentinel deadlines never do."""
    deadline = parse_deadline(program.application_deadline)
    if deadline is None:
        return False
    return today <= deadline <= today + timedelta(days=days)


def apply_client_filters(
    programs: list[GovSupportProgram],
    filters: SearchFilters,
    today: Optional[date] = None,
) -> list[GovSupportProgram]:
    """Filters the catalog does not apply reliably server-side."""
    today = today or date.today()
    filtered = programs

    if filters.regions:
        filtered = [
            p
            for p in filtered
            if NATIONWIDE in p.geographic_regions
            or any(r in filters.regions for r in p.geographic_regions)
        ]

    if filters.support_areas:
        filtered = [p for p in filtered if p.support_area in filters.support_areas]

    if filters.this_week_only:
        week_ago = today - timedelta(days=THIS_WEEK_DAYS)
        filtered = [
            p
            for p in filtered
            if (announced := parse_date(p.announcement_date)) is not None
            and announced >= week_ago
        ]

    if filters.ending_soon:
        filtered = [p for p in filtered if is_ending_soon(p, today)]

    return filtered
