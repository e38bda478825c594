"""Player-facing announcement text, keyed by locale tag."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class Messages:
    """Templates for the restart announcements.

    ``countdown`` takes a single ``{seconds}`` placeholder.
    """

    restart_warning: str
    countdown: str

    def countdown_message(self, seconds: int) -> str:
        return self.countdown.format(seconds=seconds)


DEFAULT_LOCALE = "en"

MESSAGES: Mapping[str, Messages] = MappingProxyType(
    {
        "en": Messages(
            restart_warning="Update received, restarting in 60 seconds",
            countdown="Restarting in {seconds}",
        ),
        "ru": Messages(
            restart_warning="Обновление получено, перезапуск через 60 секунд",
            countdown="Перезапуск через {seconds}",
        ),
    }
)


def select_messages(tag: str | None) -> Messages:
    """Return the messages for *tag*, falling back to English.

    Region suffixes are ignored, so ``ru-RU`` and ``ru_RU`` select ``ru``.
    """
    key = (tag or "").strip().lower().replace("_", "-")
    if key in MESSAGES:
        return MESSAGES[key]
    primary = key.split("-", 1)[0]
    return MESSAGES.get(primary, MESSAGES[DEFAULT_LOCALE])
