from __future__ import annotations

from typing import Callable, List, Optional

from bindings import AxisSource, BindingSet, ButtonSource, GamepadBinding, KeyboardBinding, default_keyboard_bindings
from device_poller import DevicePoller, GamepadSnapshot, direction_from_stick
from input_models import Button2Event, Direction, DirectionEvent
from trainer_config import InputConfig, TrainerConfig


def pad(*pressed: int, axes=()) -> GamepadSnapshot:  # noqa: ANN001
    return GamepadSnapshot(connected=True, buttons=tuple(index in pressed for index in range(16)), axes=tuple(axes))


class FakeDevice:
    def __init__(self) -> None:
        self.snapshots: list = []
        self.key_down: Optional[Callable[[str], None]] = None
        self.key_up: Optional[Callable[[str], None]] = None
        self.unsubscribed = 0

    def _unsubscribe(self) -> None:
        self.unsubscribed += 1

    def on_key_down(self, callback: Callable[[str], None]) -> Callable[[], None]:
        self.key_down = callback
        return self._unsubscribe

    def on_key_up(self, callback: Callable[[str], None]) -> Callable[[], None]:
        self.key_up = callback
        return self._unsubscribe

    def poll_gamepads(self) -> list:
        return list(self.snapshots)


class Recorder:
    def __init__(self, poller: DevicePoller) -> None:
        self.directions: List[DirectionEvent] = []
        self.presses: List[Button2Event] = []
        poller.on_direction(self.directions.append)
        poller.on_button2(self.presses.append)

    @property
    def direction_values(self) -> List[Direction]:
        return [event.direction for event in self.directions]


def cardinal_keyboard() -> BindingSet:
    return BindingSet(
        up=KeyboardBinding("w"),
        down=KeyboardBinding("s"),
        left=KeyboardBinding("a"),
        right=KeyboardBinding("d"),
        button2=KeyboardBinding(" "),
    )


def test_keyboard_edges_resolve_to_single_diagonal() -> None:
    poller = DevicePoller(TrainerConfig(), clock_ms=lambda: 0.0)
    recorder = Recorder(poller)

    poller.handle_key_down("s", 10.0)
    poller.handle_key_down("d", 12.0)
    poller.handle_key_up("s", 20.0)
    poller.handle_key_up("d", 30.0)

    assert recorder.direction_values == [
        Direction.DOWN,
        Direction.DOWN_FORWARD,
        Direction.FORWARD,
        Direction.NEUTRAL,
    ]
    assert [event.timestamp_ms for event in recorder.directions] == [10.0, 12.0, 20.0, 30.0]


def test_socd_opposites_cancel_to_neutral_axis() -> None:
    poller = DevicePoller(TrainerConfig(), cardinal_keyboard(), clock_ms=lambda: 0.0)
    recorder = Recorder(poller)

    poller.handle_key_down("a", 1.0)
    poller.handle_key_down("d", 2.0)
    poller.handle_key_down("s", 3.0)
    poller.handle_key_down("w", 4.0)

    assert recorder.direction_values == [Direction.BACK, Direction.NEUTRAL, Direction.DOWN, Direction.NEUTRAL]


def test_repeat_and_unbound_keys_emit_nothing() -> None:
    poller = DevicePoller(TrainerConfig(), clock_ms=lambda: 0.0)
    recorder = Recorder(poller)

    assert poller.handle_key_down(" ", 5.0)
    assert poller.handle_key_down(" ", 6.0)
    assert not poller.handle_key_down("q", 7.0)

    assert [event.timestamp_ms for event in recorder.presses] == [5.0]
    assert recorder.presses[0].source == "keyboard"
    assert recorder.directions == []


def test_ticks_without_change_emit_nothing() -> None:
    poller = DevicePoller(TrainerConfig(), clock_ms=lambda: 0.0)
    recorder = Recorder(poller)
    poller.handle_key_down("d", 1.0)

    for now_ms in (16.0, 32.0, 48.0):
        poller.tick(now_ms)

    assert recorder.direction_values == [Direction.FORWARD]


def test_emitted_timestamps_never_go_backwards() -> None:
    poller = DevicePoller(TrainerConfig(), clock_ms=lambda: 0.0)
    recorder = Recorder(poller)

    poller.handle_key_down("d", 50.0)
    poller.handle_key_down(" ", 40.0)
    poller.handle_key_down("s", 45.0)

    assert recorder.directions[0].timestamp_ms == 50.0
    assert recorder.presses[0].timestamp_ms == 50.0
    assert recorder.directions[1].timestamp_ms == 50.0


def test_gamepad_button2_fires_on_rising_edge_with_latency_offset() -> None:
    config = TrainerConfig(input=InputConfig(gamepad_latency_offset_ms=8.0))
    bindings = BindingSet(
        forward=KeyboardBinding("d"),
        down=KeyboardBinding("s"),
        button2=GamepadBinding(device_index=0, source=ButtonSource(index=1)),
    )
    device = FakeDevice()
    poller = DevicePoller(config, bindings, clock_ms=lambda: 0.0)
    recorder = Recorder(poller)
    poller.start(device)

    device.snapshots = [pad(1)]
    poller.tick(100.0)
    poller.tick(116.0)
    device.snapshots = [pad()]
    poller.tick(132.0)
    device.snapshots = [pad(1)]
    poller.tick(148.0)

    assert [event.timestamp_ms for event in recorder.presses] == [108.0, 156.0]
    assert all(event.source == "gamepad" for event in recorder.presses)


def test_axis_binding_uses_hysteresis() -> None:
    bindings = BindingSet(
        forward=KeyboardBinding("d"),
        down=GamepadBinding(device_index=0, source=AxisSource(index=3, sign=1)),
        button2=KeyboardBinding(" "),
    )
    device = FakeDevice()
    poller = DevicePoller(TrainerConfig(), bindings, clock_ms=lambda: 0.0)
    recorder = Recorder(poller)
    poller.start(device)

    for now_ms, value in ((16.0, 0.85), (32.0, 0.6), (48.0, 0.4), (64.0, 0.7), (80.0, 0.81)):
        device.snapshots = [pad(axes=(0.0, 0.0, 0.0, value))]
        poller.tick(now_ms)

    assert [(event.direction, event.timestamp_ms) for event in recorder.directions] == [
        (Direction.DOWN, 16.0),
        (Direction.NEUTRAL, 48.0),
        (Direction.DOWN, 80.0),
    ]


def test_negative_axis_sign() -> None:
    bindings = BindingSet(
        forward=KeyboardBinding("d"),
        down=GamepadBinding(device_index=0, source=AxisSource(index=5, sign=-1)),
        button2=KeyboardBinding(" "),
    )
    device = FakeDevice()
    poller = DevicePoller(TrainerConfig(), bindings, clock_ms=lambda: 0.0)
    recorder = Recorder(poller)
    poller.start(device)

    device.snapshots = [pad(axes=(0.0, 0.0, 0.0, 0.0, 0.0, 0.9))]
    poller.tick(16.0)
    device.snapshots = [pad(axes=(0.0, 0.0, 0.0, 0.0, 0.0, -0.9))]
    poller.tick(32.0)

    assert recorder.direction_values == [Direction.DOWN]


def test_missing_or_disconnected_gamepad_reads_as_released() -> None:
    bindings = BindingSet(
        forward=GamepadBinding(device_index=1, source=ButtonSource(index=15)),
        down=GamepadBinding(device_index=1, source=ButtonSource(index=13)),
        button2=GamepadBinding(device_index=1, source=ButtonSource(index=1)),
    )
    device = FakeDevice()
    poller = DevicePoller(TrainerConfig(), bindings, clock_ms=lambda: 0.0)
    recorder = Recorder(poller)
    poller.start(device)

    device.snapshots = []
    poller.tick(16.0)
    device.snapshots = [pad(1, 13, 15), GamepadSnapshot(connected=False, buttons=(True,) * 16)]
    poller.tick(32.0)
    device.snapshots = [pad(), {"connected": True, "buttons": [{"pressed": index == 15} for index in range(16)]}]
    poller.tick(48.0)

    assert recorder.presses == []
    assert recorder.direction_values == [Direction.FORWARD]


def test_stick_fallback_reads_lowest_bound_gamepad() -> None:
    bindings = BindingSet(
        forward=KeyboardBinding("d"),
        down=KeyboardBinding("s"),
        button2=GamepadBinding(device_index=1, source=ButtonSource(index=0)),
    )
    device = FakeDevice()
    poller = DevicePoller(TrainerConfig(), bindings, clock_ms=lambda: 0.0)
    recorder = Recorder(poller)
    poller.start(device)

    device.snapshots = [pad(axes=(-0.9, -0.9)), pad(axes=(0.9, 0.9))]
    poller.tick(16.0)
    device.snapshots = [pad(axes=(-0.9, -0.9)), pad(axes=(0.9, 0.2))]
    poller.tick(32.0)

    assert recorder.direction_values == [Direction.DOWN_FORWARD, Direction.FORWARD]


def test_stick_is_ignored_without_gamepad_bindings() -> None:
    device = FakeDevice()
    poller = DevicePoller(TrainerConfig(), default_keyboard_bindings(), clock_ms=lambda: 0.0)
    recorder = Recorder(poller)
    poller.start(device)

    device.snapshots = [pad(axes=(0.9, 0.9))]
    poller.tick(16.0)

    assert recorder.directions == []


def test_direction_from_stick_deadzone() -> None:
    assert direction_from_stick(0.9, 0.9) == Direction.DOWN_FORWARD
    assert direction_from_stick(-0.9, -0.9) == Direction.UP_BACK
    assert direction_from_stick(0.5, 0.0) == Direction.NEUTRAL
    assert direction_from_stick(0.51, 0.0) == Direction.FORWARD
    assert direction_from_stick(0.0, 0.6) == Direction.DOWN


def test_device_key_callbacks_are_routed_and_stop_unsubscribes() -> None:
    device = FakeDevice()
    poller = DevicePoller(TrainerConfig(), clock_ms=lambda: 7.0)
    recorder = Recorder(poller)
    poller.start(device)

    assert device.key_down is not None
    device.key_down("d")
    assert [(event.direction, event.timestamp_ms) for event in recorder.directions] == [(Direction.FORWARD, 7.0)]

    poller.stop()
    assert poller.is_stopped
    assert device.unsubscribed == 2
    assert not poller.handle_key_down(" ", 20.0)
    poller.tick(32.0)
    assert recorder.presses == []


def test_set_bindings_drops_pressed_state() -> None:
    poller = DevicePoller(TrainerConfig(), clock_ms=lambda: 0.0)
    recorder = Recorder(poller)
    poller.handle_key_down("d", 1.0)

    poller.set_bindings(cardinal_keyboard())

    assert poller.current_direction() == Direction.NEUTRAL
    assert poller.bindings() == cardinal_keyboard()
    poller.handle_key_down("a", 2.0)
    assert recorder.direction_values == [Direction.FORWARD, Direction.BACK]


def test_clear_pressed_state_releases_held_direction() -> None:
    poller = DevicePoller(TrainerConfig(), clock_ms=lambda: 0.0)
    recorder = Recorder(poller)
    poller.handle_key_down("s", 1.0)

    poller.clear_pressed_state(5.0)

    assert recorder.direction_values == [Direction.DOWN, Direction.NEUTRAL]
    assert recorder.directions[-1].timestamp_ms == 5.0


def test_restart_forgets_keys_held_across_stop() -> None:
    poller = DevicePoller(TrainerConfig(), clock_ms=lambda: 0.0)
    recorder = Recorder(poller)
    poller.handle_key_down("d", 1.0)

    poller.stop()
    poller.handle_key_up("d", 5.0)
    poller.start()
    poller.handle_key_down("s", 10.0)

    assert poller.current_direction() == Direction.DOWN
    assert recorder.direction_values == [Direction.FORWARD, Direction.DOWN]
