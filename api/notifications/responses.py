# api/notifications/responses.py
"""
Opaque tokens carried by the Yes/No buttons.

A token encodes (intent, report_status_id) as ``ans_<intent>_<id>``. The
workflow only builds tokens; transports decode them and hand the plain
(intent, id) pair back to the workflow.
"""
import re
from dataclasses import dataclass
from enum import Enum

from .constants import NO_LABEL, YES_LABEL

TOKEN_PREFIX = "ans"

_TOKEN_RE = re.compile(rf"^{TOKEN_PREFIX}_(yes|no)_([1-9][0-9]*)$")


class ResponseIntent(str, Enum):
    YES = "yes"
    NO = "no"


@dataclass(frozen=True)
class ResponseButton:
    label: str
    token: str


@dataclass(frozen=True)
class ResponseToken:
    intent: ResponseIntent
    report_status_id: int


def encode_response_token(intent: ResponseIntent, report_status_id: int) -> str:
    return f"{TOKEN_PREFIX}_{intent.value}_{report_status_id}"


def decode_response_token(data: str | None) -> ResponseToken | None:
    """Return the decoded token, or None when the data is not one of ours."""
    if not data:
        return None
    match = _TOKEN_RE.match(data.strip())
    if match is None:
        return None
    return ResponseToken(
        intent=ResponseIntent(match.group(1)),
        report_status_id=int(match.group(2)),
    )


def answer_buttons(report_status_id: int) -> list[ResponseButton]:
    """The two buttons attached to every question, bound to one status row."""
    return [
        ResponseButton(YES_LABEL, encode_response_token(ResponseIntent.YES, report_status_id)),
        ResponseButton(NO_LABEL, encode_response_token(ResponseIntent.NO, report_status_id)),
    ]
