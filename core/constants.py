"""
Constants for the assistant chat client.
"""


# ----- Transport -----

DEFAULT_API_URL = "http://localhost:49152"
DEFAULT_ASK_PATH = "/ask"
DEFAULT_REQUEST_TIMEOUT = 120.0


# ----- Stream Protocol -----

EVENT_PREFIX = "data: "


# ----- Sessions -----

TITLE_WORD_COUNT = 3
DEFAULT_SESSION_TITLE = "Conversation {number}"
CONTINUATION_MIN_MESSAGES = 2


# ----- Attachments -----

ALLOWED_ATTACHMENT_EXTENSIONS = ("pdf", "docx")

ATTACHMENT_MEDIA_TYPES = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

DEFAULT_MEDIA_TYPE = "application/octet-stream"


# ----- User Notices -----

FAILURE_NOTICE = (
    "Could not connect to the server. Check that the API is running."
)

INVALID_ATTACHMENT_NOTICE = "Only PDF or DOCX files are allowed."
