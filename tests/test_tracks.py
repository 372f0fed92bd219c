import struct

import pytest

from midiroll.tracks import MidiFileError, Track, load_midi_file, parse_midi

END = b"\x00\xff\x2f\x00"


def smf(*tracks, time_div=480, fmt=1):
    out = b"MThd" + struct.pack(">IHHH", 6, fmt, len(tracks), time_div)
    for body in tracks:
        out += b"MTrk" + struct.pack(">I", len(body)) + body
    return out


def test_rejects_bad_magic():
    with pytest.raises(MidiFileError, match="Not a MIDI"):
        parse_midi(b"RIFF" + b"\x00" * 10)


def test_rejects_bad_header_length():
    data = b"MThd" + struct.pack(">IHHH", 7, 1, 0, 480)
    with pytest.raises(MidiFileError, match="header length"):
        parse_midi(data)


def test_rejects_smpte():
    with pytest.raises(MidiFileError, match="SMPTE"):
        parse_midi(smf(time_div=0xE728))


def test_parses_header_and_tracks():
    midi = parse_midi(smf(b"\x00\x90\x3c\x64" + END, END, time_div=96, fmt=0))
    assert midi.time_div == 96
    assert midi.format == 0
    assert len(midi.tracks) == 2


def test_skips_unknown_chunk():
    body = b"\x00\x90\x3c\x64" + END
    data = (
        b"MThd" + struct.pack(">IHHH", 6, 1, 2, 480)
        + b"XXXX"
        + b"MTrk" + struct.pack(">I", len(body)) + body
    )
    midi = parse_midi(data)
    assert len(midi.tracks) == 1
    assert midi.tracks[0].data == body


def test_truncated_track_raises():
    data = b"MThd" + struct.pack(">IHHH", 6, 1, 1, 480) + b"MTrk" + struct.pack(">I", 50) + b"\x00"
    with pytest.raises(MidiFileError):
        parse_midi(data)


def test_initial_delta_is_read():
    midi = parse_midi(smf(b"\x81\x00\x90\x3c\x64" + END))
    track = midi.tracks[0]
    assert track.tick == 128
    assert track.offset == 2


@pytest.mark.parametrize(
    "raw,value",
    [(b"\x00", 0), (b"\x7f", 127), (b"\x81\x00", 128), (b"\xff\x7f", 16383)],
)
def test_variable_length(raw, value):
    track = Track(raw + b"\x90")
    assert track.decode_variable_length() == value
    assert track.offset == len(raw)


def test_variable_length_at_end_returns_zero():
    track = Track(b"\x90")
    track.offset = 1
    assert track.decode_variable_length() == 0


def test_note_on_message():
    track = Track(b"\x90\x3c\x64\x00")
    track.update_command()
    track.update_message()
    assert track.message & 0xFF == 0x90
    assert (track.message >> 8) & 0xFF == 0x3C
    assert (track.message >> 16) & 0xFF == 0x64
    assert track.offset == 3


def test_running_status():
    track = Track(b"\x90\x3c\x64\x00\x40\x00\x00")
    track.update_command()
    track.update_message()
    track.update_tick()
    track.update_command()
    track.update_message()
    assert track.message & 0xFF == 0x90
    assert (track.message >> 8) & 0xFF == 0x40
    assert (track.message >> 16) & 0xFF == 0x00


def test_program_change_has_one_data_byte():
    track = Track(b"\xc5\x07\x00")
    track.update_command()
    track.update_message()
    assert track.message & 0xFF == 0xC5
    assert (track.message >> 8) & 0xFF == 0x07
    assert track.offset == 2


def test_meta_tempo_payload():
    track = Track(b"\xff\x51\x03\x07\xa1\x20\x00")
    track.update_command()
    track.update_message()
    assert track.message & 0xFF == 0xFF
    assert (track.message >> 8) & 0xFF == 0x51
    assert track.long_msg == b"\x07\xa1\x20"
    assert track.offset == 6


def test_finish_deactivates():
    track = Track(b"\x00")
    track.finish()
    assert not track.active
    assert track.length == 0


def test_exhausted_track_finishes_on_tick_update():
    track = Track(b"\x90\x3c\x64")
    track.update_command()
    track.update_message()
    track.update_tick()
    assert not track.active


def test_load_round_trip(tmp_path):
    path = tmp_path / "song.mid"
    body = b"\x00\x90\x3c\x64" + END
    path.write_bytes(smf(body, time_div=240))
    midi = load_midi_file(path)
    assert midi.time_div == 240
    assert midi.tracks[0].data == body


def test_load_missing_file(tmp_path):
    with pytest.raises(MidiFileError, match="Could not open"):
        load_midi_file(tmp_path / "missing.mid")