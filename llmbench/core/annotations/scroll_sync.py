"""
Ratio-based synchronized scrolling between two panels.

Each panel's position is expressed as scroll_top / (scroll_height -
client_height), clamped to [0, 1]. Moving one panel sets the other to
the same ratio. A single shared syncing flag suppresses the echo scroll
event the follower emits when it is moved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class ScrollMetrics:
    """Vertical scroll geometry of a panel, in pixels."""
    scroll_top: float
    scroll_height: float
    client_height: float

    @property
    def scroll_range(self) -> float:
        """Scrollable distance, floored to 1 to avoid division by zero."""
        return max(self.scroll_height - self.client_height, 1)

    @property
    def ratio(self) -> float:
        return scroll_ratio(self)


def scroll_ratio(metrics: ScrollMetrics) -> float:
    """Scroll position as a ratio clamped to [0, 1]."""
    ratio = metrics.scroll_top / metrics.scroll_range
    return max(0.0, min(1.0, ratio))


def scroll_top_for_ratio(ratio: float, metrics: ScrollMetrics) -> float:
    """Scroll offset that places a panel at the given ratio."""
    ratio = max(0.0, min(1.0, ratio))
    return ratio * metrics.scroll_range


class ScrollTarget(Protocol):
    """A scrollable panel the synchronizer can read and move."""

    def scroll_metrics(self) -> ScrollMetrics:
        ...

    def set_scroll_top(self, value: float) -> None:
        ...


class ScrollSynchronizer:
    """
    Keeps two scroll targets at the same scroll ratio.

    Views call on_scrolled(source) from their scroll handler. Setting the
    follower's position normally fires the follower's own handler; the
    shared syncing flag makes that nested call a no-op.

    Usage:
        sync = ScrollSynchronizer(left, right)
        sync.enabled = True            # diff mode on
        left_scrollbar.valueChanged.connect(lambda _: sync.on_scrolled(left))
    """

    def __init__(self, first: ScrollTarget, second: ScrollTarget, enabled: bool = False):
        self.first = first
        self.second = second
        self.enabled = enabled
        self._syncing = False

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    def partner(self, source: ScrollTarget) -> Optional[ScrollTarget]:
        if source is self.first:
            return self.second
        if source is self.second:
            return self.first
        return None

    def on_scrolled(self, source: ScrollTarget) -> bool:
        """
        Propagate a scroll of source to its partner.

        Returns:
            True if the partner was moved
        """
        if not self.enabled or self._syncing:
            return False

        target = self.partner(source)
        if target is None:
            logging.warning("ScrollSynchronizer - Scroll event from an unbound target")
            return False

        self._syncing = True
        try:
            ratio = scroll_ratio(source.scroll_metrics())
            target.set_scroll_top(scroll_top_for_ratio(ratio, target.scroll_metrics()))
        finally:
            self._syncing = False
        return True
