from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

SECRET_CONTENT_PLACEHOLDER = "비밀글입니다. 비밀번호를 입력해주세요."


class ContentVisibility(str, Enum):
    FULL = "full"
    REDACTED = "redacted"


class AnswerVisibility(str, Enum):
    FULL = "full"
    HIDDEN = "hidden"


@dataclass(frozen=True)
class Disclosure:
    content: ContentVisibility
    answer: AnswerVisibility

    @property
    def requires_password(self) -> bool:
        return self.content is ContentVisibility.REDACTED


_FULL = Disclosure(content=ContentVisibility.FULL, answer=AnswerVisibility.FULL)
_LOCKED = Disclosure(content=ContentVisibility.REDACTED, answer=AnswerVisibility.HIDDEN)


def decide_disclosure(is_secret: bool, verified: bool) -> Disclosure:
    """Field visibility for an inquiry; public posts ignore ``verified``."""
    if not is_secret:
        return _FULL
    return _FULL if verified else _LOCKED
