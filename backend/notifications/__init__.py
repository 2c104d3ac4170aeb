"""
Notification system for government support program alerts.

This module handles:
- Matching programs against each user's region and category preferences
- Generating message text and queuing it for delivery
- Sending queued messages via KakaoTalk
"""

from .program_matcher import (
    match_opportunities_with_users,
    match_user_preferences_with_opportunities,
)
from .notification_generator import (
    generate_notifications,
    process_grouped_matches_into_notifications,
    process_matches_into_notifications,
    queue_notifications,
)
from .message_queue import create_message_queue_entry, process_message_queue
from .kakao_sender import send_kakao_notification

__all__ = [
    'match_user_preferences_with_opportunities',
    'match_opportunities_with_users',
    'generate_notifications',
    'queue_notifications',
    'process_matches_into_notifications',
    'process_grouped_matches_into_notifications',
    'create_message_queue_entry',
    'process_message_queue',
    'send_kakao_notification',
]
