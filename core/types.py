"""
Wire types for the assistant API.
All types are Pydantic models matching the JSON exchanged with the server.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, StrictBool, StrictStr


# ----- Request -----

class AttachmentPayload(BaseModel):
    """Encoded file sent alongside a query."""
    content: str
    filename: str
    media_type: str = Field(alias="type")

    class Config:
        populate_by_name = True


class AskRequest(BaseModel):
    """Body of the POST request that opens a turn."""
    query: str
    session_id: Optional[str] = None
    file: Optional[AttachmentPayload] = None

    def to_payload(self) -> dict[str, Any]:
        """Dump the JSON body, leaving out fields that were not set."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ----- Response Stream -----

class StreamRecord(BaseModel):
    """One `data: ` record of the response stream.

    Every field is optional; unknown fields are ignored so newer servers can
    add keys without breaking older clients.
    """
    session_id: Optional[StrictStr] = None
    data: Optional[StrictStr] = None
    turn_complete: Optional[StrictBool] = None

    class Config:
        extra = "ignore"

    @property
    def is_turn_complete(self) -> bool:
        return bool(self.turn_complete)
