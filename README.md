# vbcore

Hardware components of a Virtual Boy emulator, in plain Python with no
third-party dependencies.

- `vbcore.vip` – the video image processor (`VIP`): frame buffers,
  character RAM and display RAM behind `read8`/`read16`/`write8`/`write16`,
  the interrupt, display-control, brightness, drawing-control and palette
  registers, and the column-by-column display and block-by-block drawing
  timing in `update`. Debugger access goes through `get_register` and
  `set_register` with `VIPRegister` ids; interrupt bits are in `Interrupt`.
- `vbcore.vip_video` – `VideoOutput` turns frame-buffer columns into 32-bit
  pixels on a `Surface` in the anaglyph, CyberScope, side-by-side,
  vertical-line and horizontal-line interleaved modes of `vbcore.vb.Mode3D`.
  `brightness_levels`, `hli_table` and `make_color` are the table helpers.
- `vbcore.vsu` – the sound unit (`VSU`): five wave channels and a noise
  channel, with interval, envelope, sweep and modulation. Level changes are
  sent to any object with an `offset(timestamp, delta)` method, such as
  `DeltaRecorder`, which keeps them and sums them in `level`.
- `vbcore.timer` – the interval `Timer`, with `TimerRegister` ids for
  debugger access.
- `vbcore.gamepad` – the serial `Gamepad` interface.
- `vbcore.savestate` – the chunked save-state format: a 32-byte header
  starting `MDFNSVST` (the older `MEDNAFENSVESTATE` header is also
  accepted), named sections, and named little-endian fields built with
  `int_field`, `array_field` and `bool_field`.
- `vbcore.core_options` – the option definitions (`OPTION_DEFS_US`),
  `register_core_options` to hand them to a frontend, and the old-style
  `"Description; default|other|..."` strings from `option_values_string`
  and `legacy_variables`.
- `vbcore.bits` – `sign_extend`, `sign_x_to_s32`, `swap16`, word-array
  helpers and the 256-flag `RetroBits`.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Wiring the components

Each component talks to the rest of the machine through a `SystemBus`
(see `vbcore.vb`): scheduling events, raising interrupt lines and asking
the CPU loop to exit. `RecordingBus` records every such call in `events`,
`irq`, `history` and `exit_requests`, which suits tests and driving the
components by hand.

```python
from vbcore.vb import RecordingBus
from vbcore.timer import Timer, TimerRegister

bus = RecordingBus()
timer = Timer(bus)
timer.power()
timer.write(0, 0x18, 0x10)   # reload value, low byte
timer.write(0, 0x20, 0x09)   # enable, interrupt on zero
timer.update(40000)
print(timer.get_register(TimerRegister.COUNTER))
```

The sound unit writes into two sinks:

```python
from vbcore.vsu import VSU, DeltaRecorder

left, right = DeltaRecorder(), DeltaRecorder()
vsu = VSU(left, right)
vsu.end_frame(10000)
print(left.level, right.level)
```

The video processor draws into a `Surface` passed to `start_frame`, which
returns the picture size for the current 3D mode:

```python
from vbcore.vip import VIP
from vbcore.vip_video import Surface

vip = VIP(bus)
surface = Surface()
width, height = vip.start_frame(surface)
```

## Core options

```python
from vbcore.core_options import OPTION_DEFS_US, option_values_string

print(option_values_string(OPTION_DEFS_US[4]))
# CPU emulation  (Restart); fast|accurate
```

`register_core_options(frontend)` uses the newer interface when the
frontend reports an options version of 1 or more, passing a translated
set from the optional `translations` mapping for non-English languages,
and falls back to `set_variables` with the old-style strings otherwise.

## Save states

Components save and restore themselves with `state_action(mem, load)`
against a `StateMem` buffer; `save_state` and `load_state` put the header
around a callable that runs every component's action.

```python
from vbcore.savestate import StateMem, save_state, load_state

mem = StateMem()
save_state(mem, lambda m, load: timer.state_action(m, load))
data = mem.getvalue()

load_state(StateMem(data), lambda m, load: timer.state_action(m, load))
```

Loading raises `StateError` when the header magic is wrong or a required
section is missing. Fields whose recorded size does not match are skipped.

## What this package does not do

- There is no CPU, no memory bus tying the components together and no
  game loading; the caller drives each component with timestamps.
- The VIP does not render background maps or objects itself. Block
  drawing is delegated to the optional `draw_block` callable given to
  `VIP`; without one, each drawn block comes out blank.
- The sound unit produces level changes only; there is no band-limited
  synthesis, resampling or audio output.
- There is no frontend, window or command-line program.