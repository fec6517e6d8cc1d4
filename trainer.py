"""
trainer.py

Entrypoint for the JustFrame trainer.

Integration
- Loads config (trainer_config.get_config) and configures logging from it
- Creates QApplication, QtScheduler, AttemptController and QtTrainerBridge
- Attaches a pygame gamepad source when pygame is installed
- Shows a small window with the last result and the input history feed

Modes
- --run-tests     run the pure logic self tests of every core module (no Qt)
- --print-config  print the resolved config as JSON and exit
- --keyboard-only do not attach the pygame gamepad source
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from trainer_config import TrainerConfig, get_config

logger = logging.getLogger(__name__)


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(config: TrainerConfig) -> None:
    logging.basicConfig(level=getattr(logging, config.logging.level, logging.INFO), format=LOG_FORMAT)


def _run_unit_tests() -> None:
    import attempt_controller
    import bindings
    import device_poller
    import frame_quantizer
    import input_buffer
    import input_history
    import motion_recognizer
    import session_stats
    import tick_scheduler
    import timing_classifier

    for module in (
        frame_quantizer,
        bindings,
        input_buffer,
        tick_scheduler,
        device_poller,
        motion_recognizer,
        timing_classifier,
        input_history,
        session_stats,
        attempt_controller,
    ):
        module._run_unit_tests()
        print(f"{module.__name__}: ok")


def _build_gamepad_source(keyboard_only: bool) -> Optional[object]:
    if keyboard_only:
        return None
    try:
        import pygame  # type: ignore  # noqa: F401
    except ImportError:
        logger.info("pygame is not installed; gamepad input disabled")
        return None

    from pygame_gamepads import PygameGamepadSource

    return PygameGamepadSource()


def build_main_window(controller, scheduler):
    """
    Build the trainer window and its QtTrainerBridge.

    Only the window takes keyboard focus, so key events always reach the bridge.
    """
    from PyQt6.QtCore import Qt
    from PyQt6.QtWidgets import QLabel, QListWidget, QMainWindow, QVBoxLayout, QWidget

    from qt_bridge import QtTrainerBridge
    from timing_classifier import tier_info

    window = QMainWindow()
    window.setWindowTitle("JustFrame")
    window.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
    root_widget = QWidget(window)
    root_layout = QVBoxLayout(root_widget)

    result_label = QLabel("Ready", root_widget)
    detail_label = QLabel("", root_widget)
    stats_label = QLabel("", root_widget)
    history_list = QListWidget(root_widget)
    history_list.setObjectName("historyList")
    history_list.setFocusPolicy(Qt.FocusPolicy.NoFocus)
    root_layout.addWidget(result_label)
    root_layout.addWidget(detail_label)
    root_layout.addWidget(stats_label)
    root_layout.addWidget(history_list, stretch=1)
    window.setCentralWidget(root_widget)

    bridge = QtTrainerBridge(controller, scheduler, parent=window)

    def refresh_history() -> None:
        history_list.clear()
        for entry in controller.history().merged()[-30:]:
            history_list.addItem(f"{entry.display_frame:>6}  {entry.arrow:<4} {entry.delta_text}")
        history_list.scrollToBottom()

    def show_result(result) -> None:
        info = tier_info(result.tier)
        result_label.setText(f"{info.move_name}  ({result.tier.value})")
        detail_label.setText(
            f"{info.description}  input={result.input_frames}f total={result.total_frames}f"
            f" confidence={result.confidence:.1f}"
        )
        summary = controller.stats().summary()
        stats_label.setText(
            f"attempts={summary.total} ewgf={summary.mid_or_better_rate:.0f}%"
            f" avg={summary.average_delta_ms:.2f}ms sd={summary.std_dev_ms:.2f}ms"
        )
        refresh_history()

    bridge.attemptClassified.connect(show_result)
    bridge.directionChanged.connect(lambda _event: refresh_history())

    window.installEventFilter(bridge)
    window.resize(480, 600)
    return window, bridge


def _run_gui(config: TrainerConfig, keyboard_only: bool) -> int:
    from PyQt6.QtWidgets import QApplication

    from attempt_controller import AttemptController
    from bindings import binding_set_from_dict
    from qt_bridge import QtScheduler

    qt_application = QApplication(sys.argv)

    scheduler = QtScheduler()
    bindings = binding_set_from_dict(config.bindings) if config.bindings else None
    controller = AttemptController(config, scheduler, bindings=bindings)

    window, _bridge = build_main_window(controller, scheduler)
    window.show()
    window.setFocus()

    controller.start(_build_gamepad_source(keyboard_only))
    try:
        return int(qt_application.exec())
    finally:
        controller.stop()


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="JustFrame just-frame input trainer")
    parser.add_argument("--run-tests", action="store_true", help="Run pure logic tests (no Qt).")
    parser.add_argument("--print-config", action="store_true", help="Print the resolved config and exit.")
    parser.add_argument("--keyboard-only", action="store_true", help="Do not poll gamepads.")
    return parser


def main() -> int:
    args = build_argument_parser().parse_args()
    if args.run_tests:
        _run_unit_tests()
        print("All self tests passed.")
        return 0
    if args.print_config:
        import trainer_config

        return trainer_config.main()

    config, config_path = get_config()
    configure_logging(config)
    logger.info("Config loaded from %s", config_path if config_path is not None else "(defaults)")
    return _run_gui(config, bool(args.keyboard_only))


if __name__ == "__main__":
    raise SystemExit(main())
