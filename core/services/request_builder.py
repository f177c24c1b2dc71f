"""Assemble the body of an ask request."""

from typing import Optional

from core.constants import CONTINUATION_MIN_MESSAGES
from core.exceptions import EmptyQueryError
from core.types import AskRequest, AttachmentPayload


def should_continue_session(prior_message_count: int) -> bool:
    """A session continues server-side once it has completed an exchange."""
    return prior_message_count >= CONTINUATION_MIN_MESSAGES


def build_request(
    query: str,
    prior_message_count: int,
    session_id: Optional[str],
    attachment: Optional[AttachmentPayload] = None,
) -> AskRequest:
    """
    Build the request for one turn.

    Args:
        query: The user's query text
        prior_message_count: Messages the session held before this query
        session_id: Identifier of the target session
        attachment: Optional encoded file

    Returns:
        The request model

    Raises:
        EmptyQueryError: If the query is blank
    """
    query = query.strip()
    if not query:
        raise EmptyQueryError("Query text is empty")

    request = AskRequest(query=query)
    # First turns let the server mint its own session identifier
    if session_id and should_continue_session(prior_message_count):
        request.session_id = session_id
    if attachment is not None:
        request.file = attachment
    return request
