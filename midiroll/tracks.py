"""Standard MIDI file parsing into per-track event cursors."""

from __future__ import annotations

import logging
import struct
import time
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path

log = logging.getLogger(__name__)

HEADER_MAGIC = b"MThd"
TRACK_MAGIC = b"MTrk"
META = 0xFF
SYSEX = 0xF0


class MidiFileError(ValueError):
    """Raised when a MIDI file cannot be read or is not supported."""


@dataclass(eq=False)
class Track:
    """A cursor over the raw event bytes of one track."""

    data: bytes | None
    tick: int = 0
    offset: int = 0
    message: int = 0
    long_msg: bytes = b""

    @property
    def active(self) -> bool:
        return self.data is not None

    @property
    def length(self) -> int:
        return 0 if self.data is None else len(self.data)

    def _byte(self, index: int) -> int:
        data = self.data or b""
        return data[index] if index < len(data) else 0

    def decode_variable_length(self) -> int:
        """Read a variable-length quantity at the cursor."""
        if self.data is None or self.offset >= len(self.data):
            return 0
        result = 0
        while True:
            byte = self.data[self.offset]
            self.offset += 1
            result = (result << 7) | (byte & 0x7F)
            if not byte & 0x80 or self.offset >= len(self.data):
                return result

    def update_tick(self) -> None:
        """Advance the track's absolute tick by the next delta time."""
        self.tick += self.decode_variable_length()
        if self.offset >= self.length:
            self.finish()

    def update_command(self) -> None:
        """Take a new status byte if one is present (else keep running status)."""
        if not self.data or self.offset >= len(self.data):
            return
        status = self.data[self.offset]
        if status >= 0x80:
            self.offset += 1
            self.message = status

    def update_message(self) -> None:
        """Read the data bytes belonging to the current status."""
        if not self.data:
            return
        status = self.message & 0xFF
        if status < 0xC0 or 0xE0 <= status < 0xF0:
            temp = self._byte(self.offset) << 8 | self._byte(self.offset + 1) << 16
            self.offset += 2
        elif status < 0xE0:
            temp = self._byte(self.offset) << 8
            self.offset += 1
        elif status in (META, SYSEX):
            temp = 0
            if status == META:
                temp = self._byte(self.offset) << 8
                self.offset += 1
            size = self.decode_variable_length()
            self.long_msg = bytes(self.data[self.offset:self.offset + size])
            self.offset += size
        else:
            temp = 0
        self.message = status | temp

    def finish(self) -> None:
        """Mark the track as ended."""
        self.data = None


@dataclass
class MidiFile:
    """A parsed MIDI file: its format, tick division and tracks."""

    format: int
    time_div: int
    tracks: list[Track] = field(default_factory=list)


def parse_midi(data: bytes) -> MidiFile:
    """Parse the bytes of a standard MIDI file."""
    if data[:4] != HEADER_MAGIC:
        raise MidiFileError("Not a MIDI file")
    if len(data) < 8:
        raise MidiFileError("Truncated header")
    (header_length,) = struct.unpack_from(">I", data, 4)
    if header_length != 6:
        raise MidiFileError("Invalid header length")
    if len(data) < 14:
        raise MidiFileError("Truncated header")
    fmt, num_tracks, time_div = struct.unpack_from(">HHH", data, 8)
    if time_div >= 0x8000:
        raise MidiFileError("SMPTE timing not supported")

    log.info("%d tracks", num_tracks)
    tracks: list[Track] = []
    pos = 14
    for _ in range(num_tracks):
        chunk = data[pos:pos + 4]
        pos += 4
        if chunk != TRACK_MAGIC:
            continue
        if pos + 4 > len(data):
            raise MidiFileError("Truncated track header")
        (size,) = struct.unpack_from(">I", data, pos)
        pos += 4
        body = bytes(data[pos:pos + size])
        if len(body) < size:
            raise MidiFileError("Truncated track data")
        pos += size
        track = Track(body)
        track.update_tick()
        tracks.append(track)
    return MidiFile(format=fmt, time_div=time_div, tracks=tracks)


def load_midi_file(path: str | PathLike[str]) -> MidiFile:
    """Read and parse a MIDI file from disk."""
    started = time.perf_counter()
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise MidiFileError(f"Could not open file: {path}") from exc
    midi = parse_midi(data)
    elapsed = time.perf_counter() - started
    log.info("Parsed in %dms (%dus).", int(elapsed * 1000), int(elapsed * 1_000_000))
    return midi