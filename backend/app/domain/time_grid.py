"""Business-day time grid: the fixed catalogue of 30-minute time labels."""

from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..core.constants import GRANULE_MINUTES, TIME_LABEL_FORMAT
from ..core.exceptions import InvalidTimeLabel

SLOTS_PER_DAY = 24 * 60 // GRANULE_MINUTES


def parse_label(label: str) -> Optional[int]:
    """Return the half-hour-of-day slot (0-47) for a canonical label, or None."""
    if not isinstance(label, str):
        return None
    try:
        parsed = datetime.strptime(label, TIME_LABEL_FORMAT)
    except ValueError:
        return None
    # strptime also accepts "8:00 am"; only the zero-padded upper-case form is canonical
    if parsed.strftime(TIME_LABEL_FORMAT) != label:
        return None
    minutes = parsed.hour * 60 + parsed.minute
    if minutes % GRANULE_MINUTES:
        return None
    return minutes // GRANULE_MINUTES


def format_slot(slot: int) -> str:
    """Inverse of parse_label."""
    if not (0 <= slot < SLOTS_PER_DAY):
        raise IndexError(f"slot out of range: {slot}")
    minutes = slot * GRANULE_MINUTES
    hh, mm = divmod(minutes, 60)
    suffix = "AM" if hh < 12 else "PM"
    return f"{(hh % 12) or 12:02d}:{mm:02d} {suffix}"


class TimeGrid:
    """
    Immutable ordered sequence of consecutive 30-minute labels.

    Every schedule and booking references labels from a grid; ordering is
    always by grid position, never by string comparison ("01:00 PM" sorts
    before "09:00 AM" lexically).
    """

    __slots__ = ("_labels", "_positions")

    def __init__(self, labels: Sequence[str]):
        slots: List[int] = []
        bad = [label for label in labels if parse_label(label) is None]
        if bad:
            raise InvalidTimeLabel(bad)
        for label in labels:
            slots.append(parse_label(label))  # type: ignore[arg-type]
        if not slots:
            raise ValueError("a time grid needs at least one label")
        for prev, cur in zip(slots, slots[1:]):
            if cur != prev + 1:
                raise ValueError("grid labels must be consecutive 30-minute steps")
        self._labels: Tuple[str, ...] = tuple(labels)
        self._positions: Dict[str, int] = {label: i for i, label in enumerate(self._labels)}

    @classmethod
    def from_bounds(cls, first: str, last: str) -> "TimeGrid":
        """Build the grid covering first..last inclusive."""
        start = parse_label(first)
        end = parse_label(last)
        invalid = [lbl for lbl, slot in ((first, start), (last, end)) if slot is None]
        if invalid:
            raise InvalidTimeLabel(invalid)
        if end < start:  # type: ignore[operator]
            raise ValueError(f"grid end {last} is before start {first}")
        return cls([format_slot(s) for s in range(start, end + 1)])  # type: ignore[arg-type,operator]

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self) -> Iterator[str]:
        return iter(self._labels)

    def __contains__(self, label: object) -> bool:
        return label in self._positions

    def __eq__(self, other: object) -> bool:
        return isinstance(other, TimeGrid) and other._labels == self._labels

    def __hash__(self) -> int:
        return hash(self._labels)

    def __repr__(self) -> str:
        return f"TimeGrid({self._labels[0]!r}..{self._labels[-1]!r}, {len(self)} labels)"

    @property
    def labels(self) -> Tuple[str, ...]:
        return self._labels

    def index(self, label: str) -> int:
        try:
            return self._positions[label]
        except (KeyError, TypeError):
            raise InvalidTimeLabel([label]) from None

    def label_at(self, index: int) -> str:
        if not (0 <= index < len(self._labels)):
            raise IndexError(f"grid index out of range: {index}")
        return self._labels[index]

    def sort(self, labels: Iterable[str]) -> List[str]:
        """Chronological order by grid position; labels must be on the grid."""
        return sorted(labels, key=self.index)

    def validate(self, labels: Iterable[str]) -> List[str]:
        """De-duplicate and grid-sort labels, reporting every off-grid one at once."""
        unique = list(dict.fromkeys(labels))
        invalid = [label for label in unique if label not in self._positions]
        if invalid:
            raise InvalidTimeLabel(invalid)
        return self.sort(unique)


@lru_cache(maxsize=1)
def get_default_grid() -> TimeGrid:
    """Process-wide grid built from settings (08:00 AM..08:00 PM by default)."""
    from ..core.config import settings

    return TimeGrid.from_bounds(settings.grid_day_start, settings.grid_day_end)
