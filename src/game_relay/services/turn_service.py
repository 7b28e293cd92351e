"""Turn controller with session workflow functions."""

import logging
import signal
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from game_relay.clients.capture import (
    BuildkitePublisher,
    CapturePipeline,
    DirectoryPublisher,
    Recorder,
    render_annotation,
)
from game_relay.clients.channel import SyncChannel, create_channel
from game_relay.clients.decision import create_decision_client
from game_relay.clients.keyboard import XdotoolKeyboard
from game_relay.clients.presenter import BuildkitePresenter, LogPresenter
from game_relay.clients.process import GameProcess
from game_relay.config import RelayConfig, check_operator_channel
from game_relay.constants import SESSION_START_CAPTION
from game_relay.errors import RelayError, SessionInterrupted
from game_relay.models.action import ActionTable
from game_relay.models.mode import ControlSignal, Mode
from game_relay.models.session import EndReason, Session, TurnState
from game_relay.models.turn import Turn, TurnContext
from game_relay.strategies.base import read_control_signal
from game_relay.strategies.manager import StrategyManager

logger = logging.getLogger(__name__)

INTERRUPT_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP, signal.SIGQUIT)


@contextmanager
def interruption_guard(signals: Sequence[int] = INTERRUPT_SIGNALS) -> Iterator[None]:
    """Turn termination signals into SessionInterrupted inside the control thread."""

    def _handler(signum: int, _frame: object) -> None:
        sig_name = signal.Signals(signum).name
        logger.warning(f"Caught {sig_name}, abandoning in-flight turn and cleaning up...")
        raise SessionInterrupted(signum)

    previous = {}
    for signum in signals:
        previous[signum] = signal.signal(signum, _handler)
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


@contextmanager
def signals_deferred(signals: Sequence[int] = INTERRUPT_SIGNALS) -> Iterator[None]:
    """Ignore termination signals for the duration of cleanup.

    Only the main thread can install handlers; elsewhere this is a no-op.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = {}
    for signum in signals:
        previous[signum] = signal.signal(signum, signal.SIG_IGN)
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def release_session(process: GameProcess, session: Session) -> None:
    """Terminate the controlled process exactly once.

    Further termination signals are ignored until cleanup finishes, so a
    repeated Ctrl-C cannot leave the game or the display server behind.
    """
    if session.terminated:
        return
    session.terminated = True
    with signals_deferred():
        if session.pid is None:
            logger.info("Cleaning up: no game process, stopping display server")
            try:
                process.shutdown()
            except Exception as e:
                logger.error(f"Failed to stop display server: {e}")
            return
        logger.info(f"Cleaning up: terminating process {session.pid}")
        try:
            process.terminate(session.pid)
        except Exception as e:
            logger.error(f"Failed to terminate process {session.pid}: {e}")


@contextmanager
def session_scope(
    process: GameProcess,
    mode: Mode,
    level: str,
    warmup_seconds: float,
    history_limit: int,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[Session]:
    """Start the process, pause it after warm-up, and always release it on exit."""
    session = Session(mode=mode, level=level, history_limit=history_limit)
    try:
        session.pid = process.start(level)
        sleep(warmup_seconds)
        process.pause(session.pid)
        yield session
    except SessionInterrupted:
        session.end_reason = EndReason.INTERRUPTED
        raise
    except BaseException:
        session.end_reason = EndReason.FAILED
        raise
    finally:
        release_session(process, session)


class TurnController:
    """Drives one session: resume, capture while delivering, pause, publish, resolve, apply."""

    def __init__(
        self,
        config: RelayConfig,
        session: Session,
        process: GameProcess,
        keyboard: XdotoolKeyboard,
        pipeline: CapturePipeline,
        strategies: StrategyManager,
        channel: SyncChannel,
        actions: ActionTable,
    ):
        self.config = config
        self.session = session
        self.process = process
        self.keyboard = keyboard
        self.pipeline = pipeline
        self.strategies = strategies
        self.channel = channel
        self.actions = actions
        self.state = TurnState.IDLE
        self.events: List[Tuple[str, int]] = []
        self._events_lock = threading.Lock()

    def _set_state(self, state: TurnState, index: int) -> None:
        self.state = state
        logger.debug(f"Turn {index}: {state.value}")

    def _event(self, name: str, index: int) -> None:
        with self._events_lock:
            self.events.append((name, index))

    def capture_duration(self, index: int) -> float:
        return self.config.first_capture_seconds if index == 0 else self.config.capture_seconds

    def caption_for(self, index: int) -> str:
        previous = self.session.last_turn
        if index == 0 or previous is None:
            return SESSION_START_CAPTION
        glyph = self.actions.glyph_for(previous.action)
        return f"Move {index}: {previous.mode.indicator} {glyph} {previous.rationale}"

    def _capture(self, index: int, started: threading.Event) -> Path:
        self._event("capture_started", index)
        started.set()
        return self.pipeline.capture_clip(index, self.capture_duration(index))

    def _capture_with_delivery(self, index: int, pending: Optional[str]) -> Path:
        started = threading.Event()
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="capture") as executor:
            future = executor.submit(self._capture, index, started)
            started.wait()
            if pending is not None:
                self.keyboard.send(self.actions.get(pending))
                self._event("deliver", index)
            raw_clip = future.result()
        self._event("capture_done", index)
        return raw_clip

    def _read_control(self, index: int, control: ControlSignal) -> ControlSignal:
        if self.session.mode == Mode.MANUAL or self.config.control_scope != "all":
            return control
        return read_control_signal(self.channel, index)

    def play_turn(self, index: int) -> Turn:
        """Run one full turn and return it finalized (not yet recorded)."""
        pid = self.session.pid
        previous = self.session.last_turn
        pending = previous.action if previous is not None else None

        self._set_state(TurnState.RESUMING, index)
        self.process.resume(pid)
        self._event("resume", index)

        self._set_state(TurnState.CAPTURING, index)
        raw_clip = self._capture_with_delivery(index, pending)

        self._set_state(TurnState.PAUSING, index)
        self.process.pause(pid)
        self._event("pause", index)

        self._set_state(TurnState.PUBLISHING, index)
        artifact_ref = self.pipeline.to_artifact(raw_clip)
        clip_path = self.pipeline.artifact_path(raw_clip)
        self.pipeline.publish(artifact_ref, render_annotation(artifact_ref, self.caption_for(index)))
        self._event("publish", index)

        self._set_state(TurnState.RESOLVING_ACTION, index)
        mode = self.session.mode
        context = TurnContext(index=index, mode=mode, clip_path=clip_path, artifact_ref=artifact_ref)
        resolution = self.strategies.get(mode).resolve(context)
        control = self._read_control(index, resolution.control)
        self._event("resolve", index)

        self._set_state(TurnState.APPLYING, index)
        turn = Turn(
            index=index,
            mode=mode,
            applied_action=pending,
            action=resolution.action,
            rationale=resolution.rationale,
            artifact_ref=artifact_ref,
        )
        self._apply_control(index, control)
        self._event("apply", index)
        return turn

    def _apply_control(self, index: int, control: ControlSignal) -> None:
        if control == ControlSignal.END:
            logger.info(f"Turn {index}: end of session requested")
            self.session.end_reason = EndReason.END_REQUESTED
            return
        requested = control.requested_mode
        if requested is None or requested == self.session.mode:
            return
        if self.session.mode != Mode.MANUAL:
            logger.warning(
                f"Turn {index}: ignoring switch to {requested.value} "
                f"(switching is only allowed from manual)"
            )
            return
        logger.info(f"Turn {index}: switching mode {self.session.mode.value} -> {requested.value}")
        self.session.mode = requested

    def run(self) -> Session:
        """Play turns until an end request or the turn ceiling."""
        index = self.session.turn_count
        while True:
            logger.info(f"=== TURN {index} ({self.session.mode.value}) ===")
            try:
                turn = self.play_turn(index)
            except RelayError as e:
                logger.error(f"Turn {index} failed in {self.state.value}: {e}")
                raise
            except Exception as e:
                logger.error(
                    f"Turn {index} failed in {self.state.value} "
                    f"with unexpected {type(e).__name__}: {e}"
                )
                raise
            self.session.record(turn)
            self._set_state(TurnState.FINALIZED, index)

            if self.session.end_reason == EndReason.END_REQUESTED:
                break
            if self.session.turn_count >= self.config.max_turns:
                logger.info(f"Reached turn limit ({self.config.max_turns})")
                self.session.end_reason = EndReason.TURN_LIMIT
                break
            index += 1
            self._set_state(TurnState.IDLE, index)
        return self.session


def resolve_start_settings(config: RelayConfig, channel: SyncChannel) -> Tuple[Mode, str]:
    """Mode and level for the session, waiting on the channel when keys are configured."""
    mode = config.mode
    level = config.level
    if config.mode_key:
        mode = Mode.parse(channel.wait_for(config.mode_key, config.manual_timeout, config.poll_interval))
    if config.level_key:
        level = channel.wait_for(config.level_key, config.manual_timeout, config.poll_interval)
    return mode, level


def build_pipeline(config: RelayConfig) -> CapturePipeline:
    recorder = Recorder(
        config.capture_dir,
        display=config.display,
        geometry=config.geometry,
        framerate=config.framerate,
    )
    if config.publisher == "local":
        publisher = DirectoryPublisher(config.publish_dir)
    else:
        publisher = BuildkitePublisher()
    return CapturePipeline(recorder, publisher)


def build_process(config: RelayConfig) -> GameProcess:
    return GameProcess(
        display=config.display,
        geometry=config.geometry,
        game_binary=config.game_binary,
        game_iwad=config.game_iwad,
    )


def run_session(
    config: RelayConfig,
    channel: Optional[SyncChannel] = None,
    process: Optional[GameProcess] = None,
    pipeline: Optional[CapturePipeline] = None,
    keyboard: Optional[XdotoolKeyboard] = None,
    strategies: Optional[StrategyManager] = None,
    actions: Optional[ActionTable] = None,
) -> Session:
    """Wire the collaborators from config and play one session to completion."""
    check_operator_channel(config)
    actions = actions or ActionTable()
    channel = channel or create_channel(config)
    process = process or build_process(config)
    pipeline = pipeline or build_pipeline(config)
    keyboard = keyboard or XdotoolKeyboard(display=config.display)
    presenter = BuildkitePresenter() if config.presenter == "buildkite" else LogPresenter()
    if strategies is None:
        strategies = StrategyManager.from_config(
            config, actions, channel, presenter, lambda: create_decision_client(config)
        )

    try:
        with interruption_guard():
            mode, level = resolve_start_settings(config, channel)
            logger.info(f"Starting session (mode={mode.value}, level={level})")
            with session_scope(
                process, mode, level, config.warmup_seconds, config.history_limit
            ) as session:
                controller = TurnController(
                    config, session, process, keyboard, pipeline, strategies, channel, actions
                )
                controller.run()
    finally:
        strategies.close()
        channel.close()
    logger.info(f"Session complete after {session.turn_count} turns ({session.end_reason.value})")
    return session
