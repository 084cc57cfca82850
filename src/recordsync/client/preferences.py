"""Presentation preferences persisted next to the record cache.

Two keys share the key-value store with the cache: the tutorial-completed
flag and the accessibility settings. A missing or unreadable value reads
as the default.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from recordsync.client.kvstore import KeyValueStore

logger = logging.getLogger(__name__)

TUTORIAL_COMPLETED_KEY = "tutorial_completed"
ACCESSIBILITY_KEY = "accessibility_settings"

FONT_SIZES = ("small", "medium", "large", "xlarge")


@dataclass(frozen=True)
class AccessibilitySettings:
    """Accessibility options of the presentation layer."""

    font_size: str = "medium"
    high_contrast: bool = False
    reduced_motion: bool = False

    def __post_init__(self) -> None:
        if self.font_size not in FONT_SIZES:
            raise ValueError(f"Unknown font size: {self.font_size}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccessibilitySettings:
        return cls(
            font_size=data.get("font_size", "medium"),
            high_contrast=bool(data.get("high_contrast", False)),
            reduced_motion=bool(data.get("reduced_motion", False)),
        )


class Preferences:
    """Reads and writes presentation preferences."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def tutorial_completed(self) -> bool:
        raw = await self._store.read(TUTORIAL_COMPLETED_KEY)
        return raw == b"true"

    async def set_tutorial_completed(self, completed: bool = True) -> None:
        await self._store.write(
            TUTORIAL_COMPLETED_KEY, b"true" if completed else b"false"
        )

    async def accessibility(self) -> AccessibilitySettings:
        """Load accessibility settings, falling back to defaults."""
        raw = await self._store.read(ACCESSIBILITY_KEY)
        if raw is None:
            return AccessibilitySettings()
        try:
            return AccessibilitySettings.from_dict(json.loads(raw.decode("utf-8")))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("Ignoring unreadable accessibility settings: %s", e)
            return AccessibilitySettings()

    async def set_accessibility(self, settings: AccessibilitySettings) -> None:
        await self._store.write(
            ACCESSIBILITY_KEY, json.dumps(settings.to_dict()).encode("utf-8")
        )

    async def reset(self) -> None:
        """Forget all preferences."""
        await self._store.remove(TUTORIAL_COMPLETED_KEY)
        await self._store.remove(ACCESSIBILITY_KEY)
