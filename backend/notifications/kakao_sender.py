"""
KakaoTalk delivery for the notification system.

Sends one program notification to one user through the Kakao "send to me"
memo API, using the access token stored when the user linked their account.
"""

import json
from typing import Any, Optional

import requests

from config.pipeline_settings import (
    KAKAO_BUTTON_TITLE,
    KAKAO_MEMO_API_URL,
    REQUEST_TIMEOUT_SECONDS,
    simulate_delivery,
)
from models.notification import DeliveryResult, MessageContent
from notifications.preference_store import get_channel_credential

# Kakao text templates are capped at 200 characters
KAKAO_TEXT_LIMIT = 200


def format_kakao_message(content: MessageContent) -> str:
    """Headline by message type followed by the generated description."""
    if content.message_type == "new_program":
        headline = f"🆕 새로운 지원사업 알림: {content.title}"
    else:
        headline = f"⏰ 마감 임박 알림: {content.title}"

    if not content.description:
        return headline
    return f"{headline}\n\n{content.description}"


def _build_template(text: str, url: str) -> dict[str, Any]:
    if len(text) > KAKAO_TEXT_LIMIT:
        text = text[: KAKAO_TEXT_LIMIT - 3] + "..."
    return {
        "object_type": "text",
        "text": text,
        "link": {"web_url": url, "mobile_web_url": url},
        "button_title": KAKAO_BUTTON_TITLE,
    }


def send_kakao_notification(
    user_id: str, content: MessageContent, url: Optional[str] = None
) -> DeliveryResult:
    """
    Send a notification via KakaoTalk.

    The user's token is looked up first; without one the Kakao API is never
    contacted. When no Kakao REST key is configured the send is simulated and
    flagged as such.

    Args:
        user_id: Recipient
        content: Queued message content
        url: Link target (defaults to the content's program URL)

    Returns:
        DeliveryResult. permanent=True marks failures a retry cannot fix
        (no linked account, rejected token).
    """
    url = url or content.program_url

    try:
        token = get_channel_credential(user_id)
    except Exception as e:
        return DeliveryResult(success=False, error=f"Could not load Kakao token: {e}")

    if not token:
        return DeliveryResult(
            success=False, error="User has no linked Kakao account", permanent=True
        )

    text = format_kakao_message(content)

    if simulate_delivery():
        print(f"  [SIMULATED] Kakao message to user {user_id}: {text.splitlines()[0]}")
        return DeliveryResult(success=True, simulated=True)

    try:
        response = requests.post(
            KAKAO_MEMO_API_URL,
            data={
                "template_object": json.dumps(
                    _build_template(text, url), ensure_ascii=False
                )
            },
            headers={"Authorization": f"Bearer {token}"},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
    except requests.Timeout:
        return DeliveryResult(
            success=False,
            error=f"Kakao API timed out after {REQUEST_TIMEOUT_SECONDS} seconds",
        )
    except requests.RequestException as e:
        return DeliveryResult(success=False, error=f"Kakao API error: {e}")

    if response.status_code == 401:
        return DeliveryResult(
            success=False,
            error="Kakao token expired or invalid",
            token_expired=True,
            permanent=True,
        )

    if response.status_code != 200:
        return DeliveryResult(
            success=False,
            error=f"Failed to send Kakao notification: HTTP {response.status_code} {response.text[:200]}",
        )

    try:
        result_code = response.json().get("result_code", 0)
    except ValueError:
        result_code = 0
    if result_code != 0:
        return DeliveryResult(
            success=False, error=f"Kakao API returned result_code {result_code}"
        )

    return DeliveryResult(success=True)
