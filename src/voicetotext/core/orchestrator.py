"""
Recording state machine.

The orchestrator owns the single RecordingSession and the Status value.
Everything that changes them runs on one coordination thread which takes
messages off a queue one at a time:

    Toggle             from the hotkey listener (or the tray)
    Tick               streaming re-transcription deadline
    TranscriptionDone  posted by the transcription worker
    Shutdown           stops the loop

Transcription runs on a single worker thread, so at most one engine call
is ever in flight. A streaming tick that finds the worker busy is skipped,
not queued. Stopping while a partial transcription runs waits for it,
discards its result and then runs the final pass on the complete audio,
so a stale partial result can never land after the final text.

Status mapping:
    IDLE          no session
    RECORDING     capturing; streaming partial passes keep this status
    TRANSCRIBING  capture stopped, final (or batch) pass running
"""

import itertools
import queue
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional, Union

from ..utils.logger import get_logger
from .asr import Transcript, TranscriptionEngine
from .audio import AudioCapture, AudioSnapshot
from .errors import DeviceError, EngineError, InjectionError, VoiceToTextError
from .output import TextInjector
from .settings import Mode, Settings, get_settings
from .transcript_processor import Reconciler

logger = get_logger(__name__)


class Status(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"


class JobKind(Enum):
    PARTIAL = auto()
    FINAL = auto()


@dataclass(frozen=True)
class Toggle:
    pass


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class Shutdown:
    pass


@dataclass(frozen=True)
class TranscriptionDone:
    session_id: int
    generation: int
    kind: JobKind
    transcript: Optional[Transcript] = None
    error: Optional[EngineError] = None


Message = Union[Toggle, Tick, Shutdown, TranscriptionDone]


@dataclass(eq=False)
class RecordingSession:
    id: int
    settings: Settings
    reconciler: Reconciler
    started_at: float
    generation: int = 0
    in_flight: Optional[JobKind] = None
    stopping: bool = False
    final_snapshot: Optional[AudioSnapshot] = None

    @property
    def mode(self) -> Mode:
        return self.settings.mode

    @property
    def language(self) -> Optional[str]:
        return self.settings.language_hint


class Orchestrator:

    def __init__(
        self,
        capture: AudioCapture,
        engine: TranscriptionEngine,
        injector: TextInjector,
        settings_provider: Callable[[], Settings] = get_settings,
        on_status: Optional[Callable[[Status], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        executor: Optional[Executor] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._capture = capture
        self._engine = engine
        self._injector = injector
        self._settings_provider = settings_provider
        self._on_status = on_status
        self._on_error = on_error
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="transcription"
        )
        self._clock = clock

        self._queue: "queue.Queue[Message]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._session_ids = itertools.count(1)
        self._session: Optional[RecordingSession] = None
        self._status = Status.IDLE
        self._next_tick: Optional[float] = None

    @property
    def status(self) -> Status:
        return self._status

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    @property
    def next_tick(self) -> Optional[float]:
        return self._next_tick

    def check_model(self) -> bool:
        return self._engine.is_model_available()

    # ------------------------------------------------------------------
    # Thread-safe entry points
    # ------------------------------------------------------------------

    def toggle(self) -> None:
        self._queue.put(Toggle())

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="orchestrator", daemon=True)
        self._thread.start()
        logger.info("Orchestrator started")

    def shutdown(self, timeout: float = 5.0) -> None:
        if self._thread is not None:
            self._queue.put(Shutdown())
            self._thread.join(timeout)
            self._thread = None
        else:
            self._abort_session()
        self._executor.shutdown(wait=False)
        logger.info("Orchestrator stopped")

    # ------------------------------------------------------------------
    # Coordination loop
    # ------------------------------------------------------------------

    def _run(self) -> None:
        while True:
            if self._next_tick is not None and self._clock() >= self._next_tick:
                self.handle(Tick())
                continue

            timeout = None
            if self._next_tick is not None:
                timeout = max(0.0, self._next_tick - self._clock())

            try:
                message = self._queue.get(timeout=timeout)
            except queue.Empty:
                continue

            if isinstance(message, Shutdown):
                self._abort_session()
                return
            self.handle(message)

    def process_pending(self) -> int:
        """Handle every queued message on the calling thread."""
        handled = 0
        while True:
            try:
                message = self._queue.get_nowait()
            except queue.Empty:
                return handled
            if isinstance(message, Shutdown):
                self._abort_session()
            else:
                self.handle(message)
            handled += 1

    def handle(self, message: Message) -> None:
        try:
            if isinstance(message, Toggle):
                self._on_toggle()
            elif isinstance(message, Tick):
                self._on_tick()
            elif isinstance(message, TranscriptionDone):
                self._on_transcription_done(message)
            else:
                logger.warning(f"Ignoring unknown message {message!r}")
        except Exception as e:
            logger.exception(f"Unexpected error handling {type(message).__name__}")
            self._fail_session(e)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _on_toggle(self) -> None:
        if self._session is None:
            self._begin_session()
        elif not self._session.stopping:
            self._end_session(self._session)
        else:
            logger.info("Toggle ignored: final transcription in progress")

    def _begin_session(self) -> None:
        settings = self._settings_provider().model_copy(deep=True)
        self._engine.set_model(settings.model_id)

        if not self._engine.is_model_available():
            self._report(EngineError("No speech model installed. Download a model first."))
            return

        self._capture.device = settings.input_device
        self._capture.sample_rate = settings.sample_rate
        self._injector.instant = settings.instant_type
        self._injector.characters_per_second = settings.characters_per_second

        try:
            self._capture.start()
        except DeviceError as e:
            self._report(e)
            return

        session = RecordingSession(
            id=next(self._session_ids),
            settings=settings,
            reconciler=Reconciler(require_agreement=settings.require_agreement),
            started_at=self._clock(),
        )
        self._session = session
        self._set_status(Status.RECORDING)

        if settings.is_streaming:
            self._next_tick = self._clock() + settings.stream_interval

        logger.info(
            f"Session {session.id} started: mode={settings.mode.value}, "
            f"language={settings.language}"
        )

    def _on_tick(self) -> None:
        self._next_tick = None
        session = self._session
        if session is None or session.stopping or session.mode != Mode.STREAMING:
            return

        self._next_tick = self._clock() + session.settings.stream_interval

        if session.in_flight is not None:
            logger.debug("Streaming tick skipped: transcription still running")
            return

        try:
            snapshot = self._capture.snapshot()
        except DeviceError as e:
            self._fail_session(e)
            return

        if snapshot.duration < session.settings.min_audio_seconds:
            logger.debug(f"Streaming tick skipped: only {snapshot.duration:.2f}s of audio")
            return

        self._submit(session, JobKind.PARTIAL, snapshot)

    def _end_session(self, session: RecordingSession) -> None:
        session.stopping = True
        self._next_tick = None

        try:
            session.final_snapshot = self._capture.stop()
        except DeviceError as e:
            self._fail_session(e)
            return

        self._set_status(Status.TRANSCRIBING)

        if session.in_flight is None:
            self._submit_final(session)
        else:
            logger.info("Waiting for in-flight transcription before the final pass")

    def _submit_final(self, session: RecordingSession) -> None:
        snapshot = session.final_snapshot
        if snapshot is None or snapshot.duration < session.settings.min_audio_seconds:
            duration = snapshot.duration if snapshot is not None else 0.0
            logger.info(f"Recording too short to transcribe ({duration:.2f}s)")
            self._close_session()
            return
        self._submit(session, JobKind.FINAL, snapshot)

    def _submit(self, session: RecordingSession, kind: JobKind, snapshot: AudioSnapshot) -> None:
        session.generation += 1
        session.in_flight = kind
        generation = session.generation
        language = session.language
        logger.debug(
            f"Submitting {kind.name.lower()} transcription #{generation}: "
            f"{snapshot.duration:.2f}s of audio"
        )

        def job() -> None:
            try:
                transcript = self._engine.transcribe(snapshot, language)
            except Exception as e:
                error = e if isinstance(e, EngineError) else EngineError(str(e))
                self._queue.put(TranscriptionDone(session.id, generation, kind, error=error))
                return
            self._queue.put(TranscriptionDone(session.id, generation, kind, transcript=transcript))

        self._executor.submit(job)

    def _on_transcription_done(self, done: TranscriptionDone) -> None:
        session = self._session
        if session is None or done.session_id != session.id:
            logger.debug(f"Discarding result from finished session {done.session_id}")
            return
        if done.generation != session.generation:
            logger.debug(f"Discarding stale transcription #{done.generation}")
            return

        session.in_flight = None

        if done.kind is JobKind.PARTIAL:
            self._on_partial_result(session, done)
        else:
            self._on_final_result(session, done)

    def _on_partial_result(self, session: RecordingSession, done: TranscriptionDone) -> None:
        if session.stopping:
            logger.info("Discarding partial transcription superseded by the final pass")
            self._submit_final(session)
            return

        if done.error is not None:
            # The next tick is the retry; the session keeps recording.
            self._report(done.error)
            return

        fragment = session.reconciler.reconcile(done.transcript.text)
        if fragment:
            logger.info(f"Streaming chunk: {fragment!r}")
        self._inject(fragment)

    def _on_final_result(self, session: RecordingSession, done: TranscriptionDone) -> None:
        if done.error is not None:
            self._report(done.error)
            self._close_session()
            return

        text = done.transcript.text
        if session.mode == Mode.STREAMING:
            fragment = session.reconciler.finalize(text)
        else:
            fragment = session.reconciler.flush(text)

        logger.info(f"Final transcription: {text!r}")
        self._inject(fragment)
        self._close_session()

    def _inject(self, fragment: str) -> None:
        if not fragment:
            return
        try:
            self._injector.inject(fragment)
        except InjectionError as e:
            self._report(e)

    # ------------------------------------------------------------------
    # Session teardown and reporting
    # ------------------------------------------------------------------

    def _close_session(self) -> None:
        session = self._session
        self._session = None
        self._next_tick = None
        if session is not None:
            logger.info(
                f"Session {session.id} finished: {len(session.reconciler.emitted)} chars typed"
            )
        self._set_status(Status.IDLE)

    def _fail_session(self, error: Exception) -> None:
        self._report(error)
        self._abort_session()

    def _abort_session(self) -> None:
        if self._capture.is_recording:
            try:
                self._capture.stop()
            except DeviceError as e:
                logger.warning(f"Could not stop audio capture cleanly: {e}")
        if self._session is not None:
            self._close_session()

    def _set_status(self, status: Status) -> None:
        if status == self._status:
            return
        logger.debug(f"Status: {self._status.value} -> {status.value}")
        self._status = status
        if self._on_status:
            self._on_status(status)

    def _report(self, error: Exception) -> None:
        if isinstance(error, VoiceToTextError):
            logger.error(f"{type(error).__name__}: {error}")
        else:
            logger.error(f"Unexpected error: {error}")
        if self._on_error:
            self._on_error(str(error))
