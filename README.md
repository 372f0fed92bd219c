# midiroll

midiroll plays a Standard MIDI File in real time and draws its notes as a
piano roll in a pygame window. Channel messages are sent, in time with the
file's tempo, to a MIDI output port opened through mido.

## Installing

```
pip install .
```

mido opens output ports through its configured backend. If no backend or port
is available, `midiroll` prints `MIDI initialization failed: ...` and exits
with status 1.

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Running

```
midiroll song.mid
```

Options:

- `--port NAME` — MIDI output port to send to (default: mido's default port).
- `--mode scroll|list` — which renderer to use (default `scroll`).
- `--fps N` — target frame rate (default 144).

Close the window to stop.

In `scroll` mode, notes are painted into a wide wrapping texture that scrolls
right to left. Each note is coloured by its channel, and a 20-pixel keyboard
strip on the right lights up in the channel's colour while a key is held and
fades out over half a second after release. The corner shows the frame rate and
the number of notes that started during the last second.

In `list` mode, every visible note is redrawn each frame from a time-ordered
list, coloured by velocity, with a 40-pixel keyboard that flashes white briefly
when a note starts. The corner shows the frame rate, the number of notes held
in the list and the notes per second.

Only files with ticks-per-quarter-note timing are read. Files without an
`MThd` header, with a header length other than six, with SMPTE time division,
or with truncated chunks are rejected with an error and exit status 1.

## Using it as a library

- `midiroll.tracks` — `parse_midi(data)` and `load_midi_file(path)` return a
  `MidiFile` (`format`, `time_div`, `tracks`) of `Track` cursors over the raw
  event bytes, and raise `MidiFileError` (a `ValueError`) for files they cannot
  read.
- `midiroll.player` — `play_midi(midi, send, note_on, note_off,
  notes_per_second, clock, sleep)` plays every track, passing each channel
  message as a packed integer (status, data1 << 8, data2 << 16) to `send`, and
  returns the final `PlaybackState`. Every note-on message goes to `note_on`,
  but note-ons with velocity below 5 are not sent; note-off messages (`0x80`)
  go to `note_off`. Tempo meta events change the tick length, an end-of-track
  meta event ends a track, and SysEx messages are skipped. `notes_per_second`
  is called once a second with the count of note-ons. `clock` and `sleep` work
  in 100 ns units and default to the monotonic clock and `time.sleep`.
  `play_midi_file(path, ...)` loads and plays a file. `tempo_multiplier` gives
  the length of one tick in 100 ns units (at least 1), and `unpack_message`
  splits a packed message into type, channel and two data bytes.
  `NotesPerSecondLogger` is the counter thread used during playback.
- `midiroll.roll` — `PianoRoll` holds the scrolling view: feed it `note_on` /
  `note_off`, step it with `advance(current_time)`, which returns the
  rectangles to paint into the texture, and ask `key_highlights()` which keys
  are lit. `EventQueue` is the bounded thread-safe queue between playback and
  drawing. Helpers: `note_y`, `note_y_piano`, `note_color`,
  `key_animation_alpha`, `is_black_key`, `note_label`, `smooth_delta_time`.
- `midiroll.notelist` — `NoteList` keeps notes in start order, with
  `note_on`, `note_off`, `cleanup` (drops notes that ended off screen and caps
  the list at 300000), `find_first_visible`, `visible_notes`, `tick_flash` and
  `flashing`.
- `midiroll.app` — `RollWindow` ties playback and drawing together;
  `make_sender(port)` turns a mido output port into a `send` function; `main`
  is the `midiroll` command.

```python
from midiroll.player import play_midi_file

def on_note(channel, note, velocity):
    print("on", channel, note, velocity)

play_midi_file("song.mid", send=lambda message: None, note_on=on_note)
```

## What it does not do

midiroll makes no sound of its own: it only sends messages to a MIDI output
port, so something must be listening on that port. SysEx and other system
messages are never sent. There is no pause, seeking or playlist; playback runs
from start to end once.