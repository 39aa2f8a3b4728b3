"""Status vocabulary shared by every work item kind.

Tasks use uppercase statuses (``TODO``, ``IN_PROGRESS``, ``DONE``) while
checklists carry lowercase delegation statuses (``pending``, ``accepted``,
``completed``). Statistics only care about two categories, *terminal* and
*active*, so each item kind registers which of its statuses fall into
which category and the rest of the code asks :func:`is_terminal` /
:func:`is_active` instead of comparing strings.
"""

from enum import Enum
from typing import Dict, Iterable, Optional


class StatusCategory(str, Enum):
    """Coarse lifecycle category of a work item status."""

    TERMINAL = "terminal"
    ACTIVE = "active"
    OTHER = "other"


class StatusVocabulary:
    """Case-insensitive mapping from status strings to categories."""

    def __init__(self) -> None:
        self._categories: Dict[str, StatusCategory] = {}

    def register(
        self,
        kind: str,
        terminal: Iterable[str] = (),
        active: Iterable[str] = (),
    ) -> None:
        """Register the terminal and active statuses used by one item kind."""
        for category, statuses in ((StatusCategory.TERMINAL, terminal), (StatusCategory.ACTIVE, active)):
            for status in statuses:
                key = status.casefold()
                existing = self._categories.get(key)
                if existing is not None and existing != category:
                    raise ValueError(
                        f"Status {status!r} from {kind!r} is already registered as {existing.value}"
                    )
                self._categories[key] = category

    def category(self, status: Optional[str]) -> StatusCategory:
        if not status:
            return StatusCategory.OTHER
        return self._categories.get(status.casefold(), StatusCategory.OTHER)

    def is_terminal(self, status: Optional[str]) -> bool:
        return self.category(status) is StatusCategory.TERMINAL

    def is_active(self, status: Optional[str]) -> bool:
        return self.category(status) is StatusCategory.ACTIVE


default_vocabulary = StatusVocabulary()
default_vocabulary.register("task", terminal=["DONE"], active=["IN_PROGRESS"])
default_vocabulary.register("checklist", terminal=["completed"], active=["in_progress"])


def is_terminal(status: Optional[str]) -> bool:
    return default_vocabulary.is_terminal(status)


def is_active(status: Optional[str]) -> bool:
    return default_vocabulary.is_active(status)
