# This module defines the settings used by the notification pipeline.
# Vocabularies and URLs are module-level constants; anything an operator may
# need to change per deployment is read from the environment.

import os

from dotenv import load_dotenv

load_dotenv()

# External program catalog (Bizinfo, 기업마당)
BIZINFO_API_URL = os.getenv(
    "BIZINFO_API_URL", "https://www.bizinfo.go.kr/uss/rss/bizinfoApi.do"
)
BIZINFO_API_KEY = os.getenv("BIZINFO_API_KEY", "")
BIZINFO_HOST = "https://www.bizinfo.go.kr"
PROGRAM_DETAIL_URL = "https://www.bizinfo.go.kr/web/invest/detail/{program_id}"

# KakaoTalk "send to me" memo API
KAKAO_MEMO_API_URL = "https://kapi.kakao.com/v2/api/talk/memo/default/send"
KAKAO_REST_API_KEY = os.getenv("KAKAO_REST_API_KEY", "")
KAKAO_BUTTON_TITLE = "자세히 보기"

# Program vocabulary
NATIONWIDE = "전국"

# Non-date deadline values meaning "no fixed deadline"
OPEN_ENDED_DEADLINES = frozenset(["진행중", "상시", "상시모집", "정보 없음", "예산 소진시"])

SUPPORT_AREA_CODES = {
    "자금": "01",
    "기술": "02",
    "인력": "03",
    "수출": "04",
    "내수": "05",
    "창업": "06",
    "경영": "07",
    "기타": "09",
}
SUPPORT_AREA_NAMES = {code: name for name, code in SUPPORT_AREA_CODES.items()}
DEFAULT_SUPPORT_AREA = "기타"

KOREAN_REGIONS = [
    "서울", "부산", "인천", "대구", "광주", "대전", "울산", "세종",
    "경기", "강원", "충북", "충남", "전북", "전남", "경북", "경남", "제주",
]

# Upstream fetch
REQUEST_TIMEOUT_SECONDS = 10
FETCH_MAX_RETRIES = 2
FETCH_PAGE_SIZE = 100
ENDING_SOON_DAYS = 14
THIS_WEEK_DAYS = 7

# Matching defaults
DEFAULT_MINIMUM_MATCH_SCORE = 50
DEFAULT_REGION_WEIGHT = 50
DEFAULT_CATEGORY_WEIGHT = 50

# Generation defaults
DEFAULT_MAX_DESCRIPTION_LENGTH = 100
DEFAULT_MAX_MESSAGES_PER_USER = 5

# Delivery
DEFAULT_DRAIN_LIMIT = 50
MAX_DELIVERY_ATTEMPTS = 5
DELIVERY_BACKOFF_BASE_SECONDS = 60
DELIVERY_BACKOFF_MAX_SECONDS = 24 * 60 * 60


def simulate_delivery() -> bool:
    """Kakao delivery is simulated unless a REST key is configured."""
    forced = os.getenv("KAKAO_SIMULATE_DELIVERY", "false").lower() == "true"
    return forced or not os.getenv("KAKAO_REST_API_KEY", KAKAO_REST_API_KEY)


# Task graph
MAX_TASK_RETRIES = 3
TASK_RETENTION_DAYS = 7
DEFAULT_MAX_TASKS_PER_RUN = 5
LAST_CHECK_SETTING_KEY = "last_notification_check"
