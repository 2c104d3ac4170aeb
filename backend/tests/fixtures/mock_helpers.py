"""Helper functions for creating mocked external services."""

from typing import Any, Dict, List, Optional
from unittest.mock import Mock


def create_mock_supabase(return_data: Optional[List[Dict[str, Any]]] = None):
    """
    Create a mocked Supabase client with chainable query builder.

    Args:
        return_data: Data to return from execute() call

    Returns:
        Mock Supabase client with chainable methods
    """
    mock = Mock()

    # Make all query builder methods return the mock itself (chainable)
    for method in (
        "table",
        "select",
        "insert",
        "update",
        "upsert",
        "delete",
        "eq",
        "neq",
        "lt",
        "lte",
        "gte",
        "in_",
        "or_",
        "is_",
        "order",
        "limit",
        "single",
    ):
        getattr(mock, method).return_value = mock

    # execute() returns mock response with data
    mock_response = Mock()
    mock_response.data = return_data if return_data is not None else []
    mock.execute.return_value = mock_response

    return mock


def mock_responses(*data_sets: Optional[List[Dict[str, Any]]]) -> List[Mock]:
    """Sequence of execute() responses, for use as execute.side_effect."""
    return [Mock(data=data) for data in data_sets]


def create_mock_requests_response(
    status_code: int = 200,
    json_data: Any = None,
    text: Optional[str] = None,
    content_type: str = "application/json",
    raise_error: Optional[Exception] = None,
):
    """Create a mocked requests Response object."""
    mock_response = Mock()
    mock_response.status_code = status_code
    mock_response.headers = {"Content-Type": content_type}
    mock_response.text = text if text is not None else "{}"

    if json_data is not None:
        mock_response.json.return_value = json_data
    else:
        mock_response.json.side_effect = ValueError("No JSON object could be decoded")

    if raise_error:
        mock_response.raise_for_status.side_effect = raise_error
    else:
        mock_response.raise_for_status.return_value = None

    return mock_response
