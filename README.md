# fireflyrt

The core pieces of a runtime for a small handheld game console, as a plain
Python library with no third-party dependencies.

## What is inside

- `fireflyrt.ring.RingBuf`: a short circular history of per-frame values.
  Values for frames more than two frames away from the current one are
  dropped on `insert` and not returned by `get`.
- `fireflyrt.message`: the network messages exchanged between devices
  (`Req` with a `ReqKind`, `Intro`, `Start`, `FrameState`, `Ready`) and the
  data they carry (`FullID`, `Input`, `InputState`, `Action`).
  `encode_message` turns a message into bytes (at most 64) and
  `decode_message` turns bytes back into a message; the bare bytes `HELLO`
  decode as a hello request.
- `fireflyrt.connector.Connector`: advertises the device, answers hellos,
  collects intros of nearby devices (`PeerInfo`), and on `finalize` turns them
  into a `Connection` with peers ordered by address. `validate` raises
  `ValueError` if a peer runs a different OS version.
- `fireflyrt.connection.Connection`: keeps devices connected in the launcher,
  agrees on one app to launch (`set_app`), reports a `ConnectionStatus`, and
  on `finalize` turns into a `FrameSyncer`. `make_intro` gathers the local
  badges, scores and stash of an app; `get_friend_id` looks a device name up
  in the `friends` file and appends it when it is new.
- `fireflyrt.frame_syncer.FrameSyncer`: keeps every device in a multiplayer
  game on the same frame. It combines the inputs of all peers
  (`get_combined_input`), their random values (`get_seed`) and their requested
  `Action` (`get_action`), and raises `FrameTimeoutError` when peers fall
  silent for too long.
- `fireflyrt.menu.Menu`: the system menu state. `handle_input` takes one
  frame's `InputState` and returns the `MenuItem` chosen that frame, if any.
  Apps can `add` and `remove` custom items, which come before the built-in
  screenshot, restart and exit items.
- `fireflyrt.image.ParsedImage`: draws 1, 2 or 4 bits-per-pixel images, with
  color swaps, a transparent color and an optional sub-region (`Rect`), into
  any object that has a `set_pixel((x, y), color)` method and a `dirty`
  attribute. `parse_swaps` builds the color table.
- `fireflyrt.stats`: `CallbackFuel` keeps running fuel statistics for a
  callback, and `StatsTracker` emits `CpuResponse`, `FuelResponse` and
  `MemoryResponse` reports on fixed frames of every 60.
- `fireflyrt.utils`: `read_all`, `read_all_into`, `read_into` and `write_all`
  for draining and filling byte streams.
- `fireflyrt.errors`: `NetcodeError` and its subclasses.

## Installing

```
pip install .
```

## Example

```python
from fireflyrt.ring import RingBuf

ring = RingBuf()
ring.insert(0, "state for frame 0")
ring.insert(9, "too far ahead, dropped")
assert ring.get_current() == "state for frame 0"
assert ring.get(9) is None

from fireflyrt.message import Req, ReqKind, decode_message, encode_message

raw = encode_message(Req(ReqKind.STATE, 7))
assert decode_message(raw) == Req(ReqKind.STATE, 7)
assert decode_message(b"HELLO") == Req(ReqKind.HELLO)

from fireflyrt.stats import CallbackFuel

fuel = CallbackFuel()
for used in (2, 4, 4, 4, 5, 5, 7, 9):
    fuel.add(used)
report = fuel.as_fuel()
assert (report.min, report.max, report.mean, report.calls) == (2, 9, 5, 8)
assert round(report.var, 6) == 4.0
```

Network failures are raised as subclasses of `fireflyrt.errors.NetcodeError`,
so a single `except NetcodeError` catches all of them.

## What it does not do

The package holds the logic only. It does not open sockets, touch a real
file system, run games or draw anything on a screen:

- The network, the device (clock, random numbers, logging, directories and
  files) and the draw target are objects you pass in; the modules describe
  what they need as `typing.Protocol` classes.
- `Menu` tracks selection and returns the chosen item; it does not render
  itself.
- `StatsTracker` builds report objects; sending them anywhere is up to you.
- There is no command-line program.

## Running the tests

```
pip install ".[test]"
pytest
```