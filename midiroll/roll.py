"""Scrolling piano-roll state: note events, active notes and what to paint."""

from __future__ import annotations

import logging
import math
import threading
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

NOTE_HEIGHT = 6
MAX_KEYS = 128
MAX_CHANNELS = 16
SCROLL_TEXTURE_WIDTH = 6400
RING_BUFFER_SIZE = 13414000
CLEAR_WIDTH_MULTIPLIER = 1.5
MIN_CLEAR_WIDTH = 5.0
CLEAR_PADDING = 5.0
KEY_ANIMATION_DURATION = 0.5
KEYBOARD_WIDTH = 20
SCROLL_SPEED = 500.0
SCREEN_WIDTH = 1600
SCREEN_HEIGHT = 900
SMOOTHING_ALPHA = 0.2
INITIAL_DELTA_TIME = 1.0 / 60.0
BLACK_KEY_CLASSES = frozenset({1, 3, 6, 8, 10})

Color = tuple[int, int, int, int]

BLACK: Color = (0, 0, 0, 255)
RED: Color = (230, 41, 55, 255)
ORANGE: Color = (255, 161, 0, 255)
GOLD: Color = (255, 203, 0, 255)
GREEN: Color = (0, 228, 48, 255)
DARKGREEN: Color = (0, 117, 44, 255)
SKYBLUE: Color = (102, 191, 255, 255)
BLUE: Color = (0, 121, 241, 255)
DARKBLUE: Color = (0, 82, 172, 255)
PURPLE: Color = (200, 122, 255, 255)
MAGENTA: Color = (255, 0, 255, 255)
MAROON: Color = (190, 33, 55, 255)
BROWN: Color = (127, 106, 79, 255)
PINK: Color = (255, 109, 194, 255)
DARKGRAY: Color = (80, 80, 80, 255)
GRAY: Color = (130, 130, 130, 255)
RAYWHITE: Color = (245, 245, 245, 255)
WHITE: Color = (255, 255, 255, 255)

CHANNEL_COLORS: tuple[Color, ...] = (
    RED, ORANGE, GOLD, GREEN, DARKGREEN, SKYBLUE, BLUE, DARKBLUE,
    PURPLE, MAGENTA, MAROON, BROWN, PINK, DARKGRAY, RAYWHITE, WHITE,
)


@dataclass(frozen=True)
class MidiEvent:
    """A note-on or note-off seen by the renderer."""

    note: int
    velocity: int
    channel: int
    is_note_on: bool
    timestamp: float


@dataclass
class ActiveNote:
    """Drawing and keyboard-animation state of one (channel, note) pair."""

    is_active: bool = False
    velocity: int = 0
    start_time: float = 0.0
    start_x: float = 0.0
    needs_drawing: bool = False
    key_press_time: float = 0.0
    key_release_time: float = 0.0
    key_is_pressed: bool = False


@dataclass(frozen=True)
class Rect:
    """A filled rectangle to paint, in texture or screen coordinates."""

    x: float
    y: float
    width: float
    height: float
    color: Color


@dataclass(frozen=True)
class KeyHighlight:
    """A keyboard key lit by the strongest channel currently animating it."""

    note: int
    channel: int
    alpha: float

    @property
    def color(self) -> Color:
        return note_color(self.channel)


class EventQueue:
    """A bounded, thread-safe FIFO of MIDI events.

    Like a ring buffer of ``capacity`` slots, it holds at most ``capacity - 1``
    events; pushing onto a full queue drops the event.
    """

    def __init__(self, capacity: int = RING_BUFFER_SIZE):
        if capacity < 2:
            raise ValueError("capacity must be at least 2")
        self.capacity = capacity
        self._events: deque[MidiEvent] = deque()
        self._lock = threading.Lock()

    def push(self, event: MidiEvent) -> bool:
        """Append an event; return False if the queue was full."""
        with self._lock:
            if len(self._events) >= self.capacity - 1:
                return False
            self._events.append(event)
            return True

    def pop(self) -> MidiEvent | None:
        """Remove and return the oldest event, or None when empty."""
        with self._lock:
            return self._events.popleft() if self._events else None

    def drain(self) -> Iterator[MidiEvent]:
        """Yield events in order until the queue is empty."""
        while (event := self.pop()) is not None:
            yield event

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


def note_y(note: int, screen_height: float) -> float:
    """Vertical position of a note's lane in the roll."""
    return (note + 1) / MAX_KEYS * screen_height


def note_y_piano(note: int, screen_height: float) -> float:
    """Vertical position of a note's key on the keyboard strip."""
    return screen_height - note_y(note, screen_height) + NOTE_HEIGHT + 1


def note_color(channel: int) -> Color:
    """Colour used for notes on a channel."""
    return CHANNEL_COLORS[channel % MAX_CHANNELS]


def key_animation_alpha(
    press_time: float, release_time: float, is_pressed: bool, current_time: float
) -> float:
    """Brightness of a key: full while pressed, fading out after release."""
    if is_pressed:
        return 1.0
    if release_time > 0.0:
        since = current_time - release_time
        if since < KEY_ANIMATION_DURATION:
            return 1.0 - since / KEY_ANIMATION_DURATION
    return 0.0


def is_black_key(note: int) -> bool:
    return note % 12 in BLACK_KEY_CLASSES


def note_label(note: int) -> str | None:
    """Octave label for C notes ("C4" for 60); None for other notes."""
    if note % 12 != 0:
        return None
    return f"C{note // 12 - 1}"


def smooth_delta_time(dt: float, previous: float) -> float:
    """Exponentially smooth a frame time against the previous smoothed one."""
    return SMOOTHING_ALPHA * dt + (1.0 - SMOOTHING_ALPHA) * previous


def _span(start_x: float, end_x: float, y: float, texture_width: float, color: Color) -> list[Rect]:
    top = y - NOTE_HEIGHT
    if end_x < start_x:
        return [
            Rect(start_x, top, texture_width - start_x, NOTE_HEIGHT, color),
            Rect(0.0, top, end_x, NOTE_HEIGHT, color),
        ]
    return [Rect(start_x, top, end_x - start_x, NOTE_HEIGHT, color)]


@dataclass
class PianoRoll:
    """State of a right-to-left scrolling piano roll drawn into a wrapping texture."""

    screen_width: int = SCREEN_WIDTH
    screen_height: int = SCREEN_HEIGHT
    scroll_speed: float = SCROLL_SPEED
    texture_width: int = SCROLL_TEXTURE_WIDTH
    start_time: float = 0.0
    queue: EventQueue = field(default_factory=EventQueue)
    scroll_offset: float = 0.0
    delta_time: float = 0.0
    previous_delta_time: float = INITIAL_DELTA_TIME
    notes_per_second: int = 0
    needs_update: bool = False
    global_time: float = field(init=False)
    drawn_time: float = field(init=False)
    last_clear_time: float = field(init=False)
    notes: list[list[ActiveNote]] = field(init=False)

    def __post_init__(self) -> None:
        self.global_time = self.start_time
        self.drawn_time = self.start_time
        self.last_clear_time = self.start_time
        self.notes = [[ActiveNote() for _ in range(MAX_KEYS)] for _ in range(MAX_CHANNELS)]

    @property
    def right_edge(self) -> float:
        """Texture column that corresponds to the right edge of the screen."""
        return math.fmod(self.scroll_offset + self.screen_width, self.texture_width)

    def note_on(self, channel: int, note: int, velocity: int, timestamp: float) -> bool:
        """Record a note-on; return False if the event queue was full."""
        state = self.notes[channel][note]
        state.is_active = True
        state.velocity = velocity
        state.start_time = timestamp
        state.needs_drawing = True
        state.key_press_time = timestamp
        state.key_is_pressed = True
        pushed = self.queue.push(MidiEvent(note, velocity, channel, True, timestamp))
        self.needs_update = True
        return pushed

    def note_off(self, channel: int, note: int, timestamp: float) -> bool:
        """Record a note-off; return False if the event queue was full."""
        state = self.notes[channel][note]
        state.is_active = False
        state.needs_drawing = False
        state.key_release_time = timestamp
        state.key_is_pressed = False
        pushed = self.queue.push(MidiEvent(note, 0, channel, False, timestamp))
        self.needs_update = True
        return pushed

    def set_notes_per_second(self, nps: int) -> None:
        self.notes_per_second = nps
        log.debug("Renderer got: %d", nps)

    def clear_span(self) -> list[Rect]:
        """Rectangles that blank the texture just behind the visible window."""
        width = max(MIN_CLEAR_WIDTH, self.delta_time * self.scroll_speed * CLEAR_WIDTH_MULTIPLIER)
        x = math.fmod(self.scroll_offset - width, self.texture_width)
        if x < 0:
            x += self.texture_width
        rects = [Rect(x, 0.0, width + CLEAR_PADDING, self.screen_height, BLACK)]
        if x + width > self.texture_width:
            wrapped = x + width - self.texture_width
            rects.append(Rect(0.0, 0.0, wrapped + CLEAR_PADDING, self.screen_height, BLACK))
        self.last_clear_time = self.global_time
        return rects

    def note_segments(self) -> list[Rect]:
        """Rectangles extending every sounding note up to the right edge."""
        edge = self.right_edge
        rects: list[Rect] = []
        for channel, row in enumerate(self.notes):
            color = note_color(channel)
            for note, state in enumerate(row):
                if not state.is_active:
                    continue
                if state.needs_drawing:
                    state.start_x = edge
                    state.needs_drawing = False
                start_x = state.start_x if state.start_x >= 0 else edge
                rects.extend(_span(start_x, edge, note_y(note, self.screen_height),
                                   self.texture_width, color))
        return rects

    def _apply_events(self) -> list[Rect]:
        edge = self.right_edge
        rects: list[Rect] = []
        for event in self.queue.drain():
            state = self.notes[event.channel][event.note]
            if event.is_note_on:
                state.start_x = edge
                state.needs_drawing = False
            elif state.start_x > 0:
                rects.extend(_span(state.start_x, edge, note_y(event.note, self.screen_height),
                                   self.texture_width, note_color(event.channel)))
        return rects

    def advance(self, current_time: float) -> list[Rect]:
        """Step to ``current_time``; return texture paint operations in order."""
        raw = current_time - self.global_time
        self.delta_time = smooth_delta_time(raw, self.previous_delta_time)
        self.previous_delta_time = self.delta_time
        self.global_time = current_time

        rects = self.clear_span()
        rects.extend(self._apply_events())
        rects.extend(self.note_segments())
        self.drawn_time = self.global_time
        self.needs_update = False

        self.scroll_offset += self.delta_time * self.scroll_speed
        if self.scroll_offset >= self.texture_width:
            self.scroll_offset = math.fmod(self.scroll_offset, self.texture_width)
        return rects

    def key_highlights(self) -> list[KeyHighlight]:
        """Keys to light up, each with its strongest channel and brightness."""
        lit: list[KeyHighlight] = []
        for note in range(MAX_KEYS):
            best_alpha = 0.0
            best_channel = -1
            for channel in range(MAX_CHANNELS):
                state = self.notes[channel][note]
                alpha = key_animation_alpha(state.key_press_time, state.key_release_time,
                                            state.key_is_pressed, self.global_time)
                if alpha > best_alpha:
                    best_alpha = alpha
                    best_channel = channel
            if best_alpha > 0.0 and best_channel >= 0:
                lit.append(KeyHighlight(note, best_channel, best_alpha))
        return lit