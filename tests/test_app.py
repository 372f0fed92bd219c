import mido
import pygame
import pytest

from midiroll.app import RollWindow, build_parser, main, make_sender
from midiroll.roll import DARKGRAY, KEYBOARD_WIDTH, RED

WIDTH = 300
HEIGHT = 256


class FakePort:
    def __init__(self):
        self.sent = []

    def send(self, message):
        self.sent.append(message)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_window(mode="scroll"):
    clock = FakeClock()
    window = RollWindow(mode=mode, screen_width=WIDTH, screen_height=HEIGHT,
                        surface=pygame.Surface((WIDTH, HEIGHT)), clock=clock)
    return window, clock


def test_sender_note_on():
    port = FakePort()
    send = make_sender(port)
    send(0x90 | 60 << 8 | 100 << 16)
    assert port.sent == [mido.Message("note_on", channel=0, note=60, velocity=100)]


def test_sender_program_change_uses_two_bytes():
    port = FakePort()
    make_sender(port)(0xC5 | 7 << 8)
    assert port.sent[0].bytes() == [0xC5, 7]


def test_sender_note_off_channel():
    port = FakePort()
    make_sender(port)(0x83 | 64 << 8)
    msg = port.sent[0]
    assert (msg.type, msg.channel, msg.note) == ("note_off", 3, 64)


def test_sender_ignores_system_messages():
    port = FakePort()
    make_sender(port)(0xFF | 0x2F << 8)
    assert port.sent == []


def test_parser_defaults():
    args = build_parser().parse_args(["song.mid"])
    assert (args.midi_file, args.port, args.mode, args.fps) == ("song.mid", None, "scroll", 144)


def test_parser_rejects_unknown_mode():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["song.mid", "--mode", "bogus"])


def test_main_requires_file():
    with pytest.raises(SystemExit):
        main([])


def test_main_missing_file(tmp_path):
    assert main([str(tmp_path / "absent.mid")]) == 1


def test_main_not_midi(tmp_path, capsys):
    path = tmp_path / "junk.mid"
    path.write_bytes(b"junkjunkjunkjunk")
    assert main([str(path)]) == 1
    assert "Not a MIDI file" in capsys.readouterr().err


def test_unknown_mode_rejected():
    with pytest.raises(ValueError):
        RollWindow(mode="bogus", surface=pygame.Surface((10, 10)))


def test_scroll_frame_draws_held_note():
    window, clock = make_window()
    window.roll.note_on(0, 60, 100, 0.0)
    rects = []
    for _ in range(5):
        clock.now += 0.1
        rects = window.draw_frame()
    assert any(r.color == RED and r.width > 0 for r in rects)
    red_pixels = [
        (x, y)
        for y in range(130, 146)
        for x in range(WIDTH - KEYBOARD_WIDTH)
        if tuple(window.screen.get_at((x, y)))[:3] == RED[:3]
    ]
    assert red_pixels


def test_scroll_frame_without_notes_has_no_note_colour():
    window, clock = make_window()
    for _ in range(3):
        clock.now += 0.1
        assert window.draw_frame() == []
    assert all(
        tuple(window.screen.get_at((x, 135)))[:3] != RED[:3]
        for x in range(WIDTH - KEYBOARD_WIDTH)
    )


def test_scroll_keyboard_lights_pressed_key():
    window, clock = make_window()
    window.roll.note_on(0, 60, 100, 0.0)
    clock.now = 0.1
    window.draw_frame()
    r, g, _, _ = window.screen.get_at((WIDTH - KEYBOARD_WIDTH + 5, 137))
    assert r > DARKGRAY[0] and g < DARKGRAY[1]


def test_scroll_offset_advances():
    window, clock = make_window()
    clock.now = 0.1
    window.draw_frame()
    first = window.roll.scroll_offset
    clock.now = 0.2
    window.draw_frame()
    assert 0 < first < window.roll.scroll_offset


def test_list_frame_draws_and_flash_expires():
    window, clock = make_window("list")
    window.notes.note_on(60, 127, 0.0)
    clock.now = 0.05
    rects = window.draw_frame()
    assert len(rects) == 1
    assert rects[0].color == (255, 64, 255, 255)
    assert [note for note, _ in window.notes.flashing()] == [60]
    clock.now = 0.3
    window.draw_frame()
    assert window.notes.flashing() == []


def test_list_frame_drains_note_off_from_queue():
    window, clock = make_window("list")
    window.notes.note_on(60, 64, 0.0)
    window._on_note_off(0, 60)
    clock.now = 0.1
    window.draw_frame()
    assert len(window.queue) == 0
    assert [e.active for e in window.notes] == [False]