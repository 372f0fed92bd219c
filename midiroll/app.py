"""Windowed piano-roll player: plays a MIDI file and draws its notes as they sound."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import threading
import time
from collections.abc import Callable, Sequence

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import mido  # noqa: E402
import pygame  # noqa: E402

from .notelist import NoteList  # noqa: E402
from .player import play_midi  # noqa: E402
from .roll import (  # noqa: E402
    BLACK,
    DARKGRAY,
    GRAY,
    GREEN,
    KEYBOARD_WIDTH,
    MAX_KEYS,
    NOTE_HEIGHT,
    SCREEN_HEIGHT,
    SCREEN_WIDTH,
    SKYBLUE,
    WHITE,
    Color,
    EventQueue,
    MidiEvent,
    PianoRoll,
    Rect,
    is_black_key,
    note_label,
    note_y,
    note_y_piano,
)
from .tracks import MidiFile, MidiFileError, load_midi_file  # noqa: E402

log = logging.getLogger(__name__)

MODES = ("scroll", "list")
TARGET_FPS = 144
LIST_KEYBOARD_WIDTH = 40
LIST_SCROLL_SPEED = 500.0
GRID_COLOR: Color = (50, 50, 50, 255)
OCTAVE_LINE_COLOR: Color = (30, 30, 30, 255)
OVERLAY_COLOR: Color = (0, 0, 0, 160)
WHITE_KEY_GLOW = 0.7
BLACK_KEY_GLOW = 0.8
TITLES = {"scroll": "Piano Roll Thingy", "list": "Optimized MIDI Piano Roll"}


def make_sender(port) -> Callable[[int], None]:
    """Return a function that sends packed short messages to a mido output port."""

    def send(message: int) -> None:
        status = message & 0xFF
        if status < 0x80 or status >= 0xF0:
            return
        size = 2 if 0xC0 <= status < 0xE0 else 3
        data = [status, (message >> 8) & 0x7F, (message >> 16) & 0x7F][:size]
        port.send(mido.Message.from_bytes(data))

    return send


def _with_alpha(color: Color, factor: float) -> Color:
    return (color[0], color[1], color[2], max(0, min(255, int(255 * factor))))


def _paint(surface: pygame.Surface, x: float, y: float, width: float, height: float,
           color: Color) -> None:
    w, h = int(width), int(height)
    if w <= 0 or h <= 0:
        return
    area = pygame.Rect(int(x), int(y), w, h)
    if len(color) < 4 or color[3] >= 255:
        pygame.draw.rect(surface, color[:3], area)
        return
    layer = pygame.Surface((w, h), pygame.SRCALPHA)
    layer.fill(color)
    surface.blit(layer, area.topleft)


def _paint_rect(surface: pygame.Surface, rect: Rect) -> None:
    _paint(surface, rect.x, rect.y, rect.width, rect.height, rect.color)


class RollWindow:
    """A window that plays a MIDI file and renders a piano roll of it.

    ``mode`` chooses the renderer: ``"scroll"`` paints into a wrapping texture
    that scrolls right to left; ``"list"`` redraws every visible note each frame.
    """

    def __init__(
        self,
        midi: MidiFile | None = None,
        send: Callable[[int], None] | None = None,
        *,
        mode: str = "scroll",
        screen_width: int = SCREEN_WIDTH,
        screen_height: int = SCREEN_HEIGHT,
        fps: int = TARGET_FPS,
        surface: pygame.Surface | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if mode not in MODES:
            raise ValueError(f"unknown mode: {mode!r}")
        self.midi = midi
        self.send = send or (lambda message: None)
        self.mode = mode
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.fps = fps
        self._clock = clock
        self._time_offset = clock()
        self.roll = PianoRoll(screen_width=screen_width, screen_height=screen_height)
        self.notes = NoteList(screen_height=screen_height)
        self.queue = EventQueue()
        self.global_time = 0.0
        self.notes_per_second = 0
        self.fps_value = 0.0
        texture_width = self.roll.texture_width if mode == "scroll" else screen_width
        self.texture = pygame.Surface((texture_width, screen_height))
        self.texture.fill(BLACK[:3])
        self.screen = surface if surface is not None else pygame.Surface((screen_width, screen_height))
        self.font: pygame.font.Font | None = None
        self.small_font: pygame.font.Font | None = None
        self._player: threading.Thread | None = None

    def _now(self) -> float:
        return self._clock() - self._time_offset

    # Callbacks from the playback thread.
    def _on_note_on(self, channel: int, note: int, velocity: int) -> None:
        stamp = self._now()
        if self.mode == "scroll":
            self.roll.note_on(channel, note, velocity, stamp)
        else:
            self.queue.push(MidiEvent(note, velocity, channel, True, stamp))

    def _on_note_off(self, channel: int, note: int) -> None:
        stamp = self._now()
        if self.mode == "scroll":
            self.roll.note_off(channel, note, stamp)
        else:
            self.queue.push(MidiEvent(note, 0, channel, False, stamp))

    def _on_notes_per_second(self, nps: int) -> None:
        self.notes_per_second = nps
        self.roll.set_notes_per_second(nps)

    def _play(self) -> None:
        if self.midi is None:
            return
        try:
            play_midi(self.midi, self.send, self._on_note_on, self._on_note_off,
                      self._on_notes_per_second)
        except (MidiFileError, ValueError) as exc:
            log.error("Playback failed: %s", exc)

    def _text(self, text: str, x: float, y: float, color: Color, small: bool = False) -> None:
        font = self.small_font if small else self.font
        if font is None:
            return
        self.screen.blit(font.render(text, True, color[:3]), (int(x), int(y)))

    def _blit_flipped(self, view: pygame.Surface) -> None:
        self.screen.blit(pygame.transform.flip(view, False, True), (0, 0))

    def run(self) -> None:
        """Open the window, start playback and draw until the window is closed."""
        pygame.init()
        try:
            self.screen = pygame.display.set_mode((self.screen_width, self.screen_height))
            pygame.display.set_caption(TITLES[self.mode])
            self.font = pygame.font.Font(None, 20)
            self.small_font = pygame.font.Font(None, 12)
            ticker = pygame.time.Clock()
            self._player = threading.Thread(target=self._play, name="midi-player", daemon=True)
            self._player.start()
            running = True
            while running:
                for event in pygame.event.get():
                    if event.type == pygame.QUIT:
                        running = False
                self.draw_frame()
                pygame.display.flip()
                ticker.tick(self.fps)
                self.fps_value = ticker.get_fps()
        finally:
            pygame.quit()

    def draw_frame(self) -> list[Rect]:
        """Advance to the current time, draw one frame and return the note rectangles drawn."""
        if self.mode == "scroll":
            return self._draw_scroll_frame()
        return self._draw_list_frame()

    def _draw_scroll_frame(self) -> list[Rect]:
        roll = self.roll
        rects = roll.advance(self._now())
        self.global_time = roll.global_time
        for rect in rects:
            _paint_rect(self.texture, rect)

        sw, sh = self.screen_width, self.screen_height
        self.screen.fill(BLACK[:3])
        view = pygame.Surface((sw, sh))
        offset = int(roll.scroll_offset) % roll.texture_width
        first = min(sw, roll.texture_width - offset)
        view.blit(self.texture, (0, 0), pygame.Rect(offset, 0, first, sh))
        if first < sw:
            view.blit(self.texture, (first, 0), pygame.Rect(0, 0, sw - first, sh))
        self._blit_flipped(view)

        for note in range(MAX_KEYS):
            y = int(note_y(note, sh))
            color = WHITE if note % 12 == 0 else GRID_COLOR
            pygame.draw.line(self.screen, color[:3], (0, y), (sw, y))

        self._draw_animated_keyboard()

        _paint(self.screen, 5, 5, 300, 60, OVERLAY_COLOR)
        self._text(f"{int(self.fps_value)} FPS", 10, 10, GREEN)
        self._text(f"Notes per second: {roll.notes_per_second}", 10, 30, WHITE)
        return [rect for rect in rects if rect.color != BLACK]

    def _draw_animated_keyboard(self) -> None:
        sw, sh = self.screen_width, self.screen_height
        kw = KEYBOARD_WIDTH
        _paint(self.screen, sw - kw, 0, kw, sh, DARKGRAY)
        lit = {h.note: h for h in self.roll.key_highlights()}
        for note in range(MAX_KEYS):
            y = note_y_piano(note, sh)
            highlight = lit.get(note)
            if highlight is not None:
                _paint(self.screen, sw - kw, y - NOTE_HEIGHT, kw, NOTE_HEIGHT,
                       _with_alpha(highlight.color, WHITE_KEY_GLOW * highlight.alpha))
            if is_black_key(note):
                _paint(self.screen, sw - kw // 2, y - NOTE_HEIGHT, kw // 2, NOTE_HEIGHT, BLACK)
                if highlight is not None:
                    _paint(self.screen, sw - kw // 2, y - NOTE_HEIGHT, kw // 2, NOTE_HEIGHT,
                           _with_alpha(highlight.color, BLACK_KEY_GLOW * highlight.alpha))
            label = note_label(note)
            if label is not None:
                self._text(label, sw - kw + 2, y - NOTE_HEIGHT - 8, GRAY, small=True)

    def _draw_list_frame(self) -> list[Rect]:
        sw, sh = self.screen_width, self.screen_height
        now = self._now()
        delta = now - self.global_time
        self.global_time = now

        for event in self.queue.drain():
            if event.is_note_on:
                self.notes.note_on(event.note, event.velocity, event.timestamp)
            else:
                self.notes.note_off(event.note, event.timestamp)
        self.notes.cleanup(now, sw, LIST_SCROLL_SPEED)

        rects = self.notes.visible_notes(now, sw, LIST_SCROLL_SPEED)
        self.texture.fill(BLACK[:3])
        for octave in range(11):
            base = octave * 12
            if base < MAX_KEYS:
                y = int(note_y(base, sh))
                pygame.draw.line(self.texture, OCTAVE_LINE_COLOR[:3], (0, y), (sw, y))
        for rect in rects:
            _paint_rect(self.texture, rect)

        self.notes.tick_flash(delta)

        self.screen.fill(BLACK[:3])
        self._blit_flipped(self.texture)

        kw = LIST_KEYBOARD_WIDTH
        _paint(self.screen, sw - kw, 0, kw, sh, DARKGRAY)
        for note in range(MAX_KEYS):
            y = note_y(note, sh)
            if is_black_key(note):
                _paint(self.screen, sw - kw // 2, y - NOTE_HEIGHT, kw // 2, NOTE_HEIGHT, BLACK)
            label = note_label(note)
            if label is not None:
                self._text(label, sw - kw + 2, y - NOTE_HEIGHT - 8, GRAY, small=True)
        for note, alpha in self.notes.flashing():
            y = sh - note_y(note, sh)
            _paint(self.screen, sw - kw, y - NOTE_HEIGHT, kw, NOTE_HEIGHT, _with_alpha(WHITE, alpha))

        pygame.draw.line(self.screen, WHITE[:3], (sw - kw, 0), (sw - kw, sh))
        self._text(f"{int(self.fps_value)} FPS", 10, 10, GREEN)
        self._text(f"Notes: {len(self.notes)}", 10, 30, GREEN)
        self._text(f"NPS: {self.notes_per_second}", 10, 50, SKYBLUE)
        return rects


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="midiroll", description="Play a MIDI file as a piano roll.")
    parser.add_argument("midi_file", help="MIDI file to play")
    parser.add_argument("--port", default=None, help="MIDI output port name (default: system default)")
    parser.add_argument("--mode", choices=MODES, default="scroll", help="renderer to use")
    parser.add_argument("--fps", type=int, default=TARGET_FPS, help="target frame rate")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        midi = load_midi_file(args.midi_file)
    except MidiFileError as exc:
        print(exc, file=sys.stderr)
        return 1
    try:
        port = mido.open_output(args.port)
    except (OSError, ValueError, ImportError) as exc:
        print(f"MIDI initialization failed: {exc}", file=sys.stderr)
        return 1
    with port:
        log.info("Playing midi file: %s", args.midi_file)
        RollWindow(midi, make_sender(port), mode=args.mode, fps=args.fps).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())