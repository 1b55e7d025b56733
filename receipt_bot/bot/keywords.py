"""Classification of free-text answers into :class:`AnswerKind`.

Flows never compare raw text. Each question defines an ordered mapping
from answer kinds to keyword sets, and :func:`classify` maps the user's
answer onto exactly one kind (or ``UNRECOGNIZED``). Wording and language
live entirely in configuration.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from receipt_bot.core.config import Settings, settings
from receipt_bot.models.enums import AnswerKind

_TOKEN_SPLIT = re.compile(r"[\s,;]+")

KeywordOptions = Mapping[AnswerKind, Sequence[str]]


def normalize(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def classify(text: Optional[str], options: KeywordOptions) -> AnswerKind:
    """Return the first kind whose keywords match ``text``.

    A keyword matches when it equals the whole normalised answer or one of
    its whitespace/comma separated tokens. The order of ``options`` decides
    ties.
    """
    answer = normalize(text)
    if not answer:
        return AnswerKind.UNRECOGNIZED
    tokens = {t for t in _TOKEN_SPLIT.split(answer) if t}
    for kind, words in options.items():
        lowered = {w.lower() for w in words}
        if answer in lowered or tokens & lowered:
            return kind
    return AnswerKind.UNRECOGNIZED


def is_exact(text: Optional[str], words: Sequence[str]) -> bool:
    """True when the whole answer equals one of ``words``."""
    return normalize(text) in {w.lower() for w in words}


@dataclass(frozen=True)
class Keywords:
    """Configured keyword sets and the option maps built from them."""

    shared: tuple[str, ...]
    private: tuple[str, ...]
    multi: tuple[str, ...]
    yes: tuple[str, ...]
    no: tuple[str, ...]
    manual: tuple[str, ...]
    stop: tuple[str, ...]
    show: tuple[str, ...]

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "Keywords":
        return cls(
            shared=tuple(config.SHARED_KEYWORDS),
            private=tuple(config.PRIVATE_KEYWORDS),
            multi=tuple(config.MULTI_KEYWORDS),
            yes=tuple(config.YES_KEYWORDS),
            no=tuple(config.NO_KEYWORDS),
            manual=tuple(config.MANUAL_COMMANDS),
            stop=tuple(config.STOP_KEYWORDS),
            show=tuple(config.SHOW_KEYWORDS),
        )

    @property
    def analysis_mode(self) -> KeywordOptions:
        """AI analysis (yes) versus manual entry (no / manual command)."""
        return {AnswerKind.YES: self.yes, AnswerKind.NO: self.no, AnswerKind.MANUAL: self.manual}

    @property
    def sharing_mode(self) -> KeywordOptions:
        return {AnswerKind.SHARED: self.shared, AnswerKind.PRIVATE: self.private, AnswerKind.MULTI: self.multi}

    @property
    def default_flag(self) -> KeywordOptions:
        return {AnswerKind.SHARED: self.shared, AnswerKind.PRIVATE: self.private}

    @property
    def selection_commands(self) -> KeywordOptions:
        return {AnswerKind.STOP: self.stop, AnswerKind.SHOW: self.show}

    def is_manual_command(self, text: Optional[str]) -> bool:
        return is_exact(text, self.manual)

    def is_stop(self, text: Optional[str]) -> bool:
        return is_exact(text, self.stop)

    def is_negative(self, text: Optional[str]) -> bool:
        return is_exact(text, self.no)
