"""A time-ordered list of drawn notes for a redraw-every-frame piano roll."""

from __future__ import annotations

import bisect
from collections.abc import Iterator
from dataclasses import dataclass, field

from .roll import NOTE_HEIGHT, SCREEN_HEIGHT, Rect, note_y

FLASH_DURATION = 0.15
MAX_RENDERED_NOTES = 300000
NOTE_GREEN = 64
NOTE_BLUE = 255


@dataclass
class NoteEvent:
    """One note on the roll; ``end_time`` is negative while it still sounds."""

    note: int
    start_time: float
    velocity: int
    end_time: float = -1.0
    active: bool = True
    flash_timer: float = FLASH_DURATION

    @property
    def sounding(self) -> bool:
        return self.end_time < 0.0


@dataclass
class NoteList:
    """Notes in the order they started, trimmed as they scroll out of view."""

    screen_height: int = SCREEN_HEIGHT
    max_notes: int = MAX_RENDERED_NOTES
    notes: list[NoteEvent] = field(default_factory=list)
    needs_update: bool = True

    def __len__(self) -> int:
        return len(self.notes)

    def __iter__(self) -> Iterator[NoteEvent]:
        return iter(self.notes)

    def note_on(self, note: int, velocity: int, timestamp: float) -> NoteEvent:
        """Start a new note and return it."""
        event = NoteEvent(note=note, start_time=timestamp, velocity=velocity)
        self.notes.append(event)
        self.needs_update = True
        return event

    def note_off(self, note: int, timestamp: float) -> bool:
        """End the most recent sounding instance of ``note``; False if none."""
        for event in reversed(self.notes):
            if event.note == note and event.active and event.sounding:
                event.end_time = timestamp
                event.active = False
                self.needs_update = True
                return True
        return False

    def cleanup(self, global_time: float, screen_width: float, scroll_speed: float) -> bool:
        """Drop notes that ended off screen and cap the list; True if anything went."""
        cutoff = global_time - screen_width / scroll_speed
        kept = [e for e in self.notes if not (e.end_time >= 0 and e.end_time < cutoff)]
        changed = len(kept) != len(self.notes)
        extra = len(kept) - self.max_notes
        if extra > 0:
            kept = kept[extra:]
            changed = True
        self.notes = kept
        if changed:
            self.needs_update = True
        return changed

    def find_first_visible(self, visible_start: float) -> int:
        """Index of the first note starting at or after ``visible_start``."""
        return bisect.bisect_left(self.notes, visible_start, key=lambda e: e.start_time)

    def visible_notes(self, global_time: float, screen_width: float, scroll_speed: float) -> list[Rect]:
        """Rectangles for the notes that fall inside the visible window."""
        window_start = global_time - screen_width / scroll_speed
        rects: list[Rect] = []
        for event in self.notes:
            end = global_time if event.sounding else event.end_time
            x = (event.start_time - window_start) * scroll_speed
            if x > screen_width:
                break
            width = (end - event.start_time) * scroll_speed
            if x + width < 0:
                continue
            intensity = event.velocity / 127.0
            color = (int(intensity * 255), NOTE_GREEN, NOTE_BLUE, 255)
            y = note_y(event.note, self.screen_height)
            rects.append(Rect(x, y - NOTE_HEIGHT, width, NOTE_HEIGHT, color))
        self.needs_update = False
        return rects

    def tick_flash(self, delta_time: float) -> None:
        """Run down the key-flash timers of all flashing notes."""
        for event in self.notes:
            if event.flash_timer > 0.0:
                event.flash_timer -= delta_time

    def flashing(self) -> list[tuple[int, float]]:
        """(note, alpha) for every note whose key is still flashing."""
        return [
            (event.note, event.flash_timer / FLASH_DURATION)
            for event in self.notes
            if event.flash_timer > 0.0
        ]