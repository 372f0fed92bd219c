"""Real-time playback of parsed MIDI tracks."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from os import PathLike

from .tracks import META, SYSEX, MidiFile, load_midi_file

log = logging.getLogger(__name__)

DEFAULT_TEMPO = 500000
MAX_DRIFT = 100000
MIN_SENT_VELOCITY = 5

NoteOnCallback = Callable[[int, int, int], None]
NoteOffCallback = Callable[[int, int], None]
NotesPerSecondCallback = Callable[[int], None]


def tempo_multiplier(tempo: int, time_div: int) -> float:
    """Return the length of one tick in 100 ns units, at least 1."""
    if time_div <= 0:
        raise ValueError("time division must be positive")
    return max(1.0, tempo * 10 / time_div)


def unpack_message(message: int) -> tuple[int, int, int, int]:
    """Split a packed short message into (type, channel, data1, data2)."""
    return (
        message & 0xF0,
        message & 0x0F,
        (message >> 8) & 0xFF,
        (message >> 16) & 0xFF,
    )


class NotesPerSecondLogger:
    """Counts note-ons and reports the count once per interval."""

    def __init__(self, callback: NotesPerSecondCallback | None = None, interval: float = 1.0):
        self._callback = callback
        self.interval = interval
        self._count = 0
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("logger already started")
        self._stopped.clear()
        self._thread = threading.Thread(target=self._run, name="nps-logger", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def count(self) -> None:
        with self._lock:
            self._count += 1

    def flush(self) -> int:
        """Report the current count, reset it and return it."""
        with self._lock:
            value = self._count
            self._count = 0
        log.info("Notes per second: %d", value)
        if self._callback is not None:
            self._callback(value)
        return value

    def _run(self) -> None:
        while True:
            stopped = self._stopped.wait(self.interval)
            self.flush()
            if stopped:
                break

    def __enter__(self) -> NotesPerSecondLogger:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


@dataclass
class PlaybackState:
    """Timing and progress of a playback run."""

    tick: int = 0
    tempo: int = DEFAULT_TEMPO
    multiplier: float = 0.0
    note_ons: int = 0
    last_time: int = 0
    delta: int = 0
    old: int = 0


def _now_100ns() -> int:
    return time.monotonic_ns() // 100


def _sleep_100ns(units: int) -> None:
    time.sleep(units / 10_000_000)


def _wait_time(state: PlaybackState, delta_tick: int, now: int) -> int:
    elapsed = now - state.last_time
    state.last_time = now
    elapsed -= state.old
    state.old = int(delta_tick * state.multiplier)
    state.delta += elapsed
    wait = state.old - state.delta if state.delta > 0 else state.old
    if wait <= 0:
        state.delta = min(state.delta, MAX_DRIFT)
        return 0
    return wait


def play_midi(
    midi: MidiFile,
    send: Callable[[int], None],
    note_on: NoteOnCallback | None = None,
    note_off: NoteOffCallback | None = None,
    notes_per_second: NotesPerSecondCallback | None = None,
    clock: Callable[[], int] | None = None,
    sleep: Callable[[int], None] | None = None,
) -> PlaybackState:
    """Play all tracks, sending short messages in time; return the final state.

    ``clock`` returns the time and ``sleep`` waits, both in 100 ns units.
    """
    clock = clock or _now_100ns
    sleep = sleep or _sleep_100ns
    state = PlaybackState(last_time=clock())

    with NotesPerSecondLogger(notes_per_second) as counter:
        while True:
            for track in midi.tracks:
                while track.active and track.tick <= state.tick:
                    track.update_command()
                    track.update_message()
                    message = track.message
                    status = message & 0xFF
                    msg_type, channel, note, velocity = unpack_message(message)
                    if msg_type < 0xF0:
                        if msg_type == 0x90:
                            state.note_ons += 1
                            counter.count()
                            if note_on is not None:
                                note_on(channel, note, velocity)
                            if velocity >= MIN_SENT_VELOCITY:
                                send(message)
                        elif msg_type == 0x80:
                            if note_off is not None:
                                note_off(channel, note)
                            send(message)
                        else:
                            send(message)
                    elif status == META:
                        meta_type = (message >> 8) & 0xFF
                        if meta_type == 0x51 and len(track.long_msg) >= 3:
                            state.tempo = int.from_bytes(track.long_msg[:3], "big")
                            state.multiplier = tempo_multiplier(state.tempo, midi.time_div)
                        elif meta_type == 0x2F:
                            track.finish()
                    elif status == SYSEX:
                        log.debug("SysEx message ignored")
                    if track.active:
                        track.update_tick()

            pending = [track.tick - state.tick for track in midi.tracks if track.active]
            if not pending:
                break
            delta_tick = min(pending)
            state.tick += delta_tick
            wait = _wait_time(state, delta_tick, clock())
            if wait > 0:
                sleep(wait)
    return state


def play_midi_file(
    path: str | PathLike[str],
    send: Callable[[int], None],
    note_on: NoteOnCallback | None = None,
    note_off: NoteOffCallback | None = None,
    notes_per_second: NotesPerSecondCallback | None = None,
) -> PlaybackState:
    """Load a MIDI file and play it in real time."""
    midi = load_midi_file(path)
    log.info("Playing midi file: %s", path)
    return play_midi(midi, send, note_on, note_off, notes_per_second)