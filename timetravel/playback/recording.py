"""Record a playback run from a secondary map context into an animated GIF.

The primary context (the one the user is looking at) opens a secondary
context on the same dataset, waits for it to report ready, asks the capture
backend for permission to capture it, then tells it to replay with the
primary's playback parameters and view. The secondary replays on its own
scheduler and reports when it reaches the boundary. The primary's own
playback is never touched.

Messages travel as typed envelopes over asyncio queues. A message from
anyone other than the expected peer is dropped with a warning.
"""

import abc
import asyncio
import contextlib
import logging
import re
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Annotated, Literal, Union

from PIL import Image
from pydantic import BaseModel, Field, ValidationError

from timetravel.config import Config
from timetravel.models import Frame, RenderMode
from timetravel.session import MapSession

logger = logging.getLogger(__name__)

# --- Messages ---


class ChildReady(BaseModel):
    action: Literal["CHILD_READY"] = "CHILD_READY"


class StartPlayback(BaseModel):
    action: Literal["START_PLAYBACK"] = "START_PLAYBACK"
    start_year: int
    direction: Literal[1, -1]
    speed: int = Field(1, ge=1)
    show_parents: bool = False
    show_callouts: bool = True
    mode: RenderMode = RenderMode.SPREAD
    autozoom: bool = True
    center_lat: float
    center_lng: float
    zoom: int


class PlaybackFinished(BaseModel):
    action: Literal["PLAYBACK_FINISHED"] = "PLAYBACK_FINISHED"


Message = Annotated[
    Union[ChildReady, StartPlayback, PlaybackFinished],
    Field(discriminator="action"),
]


class Envelope(BaseModel):
    sender: str
    message: Message


class ContextEndpoint:
    """Inbox of one map context. Only accepts mail from `expected_sender`."""

    def __init__(self, name: str, expected_sender: str | None = None) -> None:
        self.name = name
        self.expected_sender = expected_sender
        self.inbox: asyncio.Queue[Envelope] = asyncio.Queue()

    def post(self, envelope: Envelope | dict) -> bool:
        """Deliver raw or typed mail. Returns False when it was rejected."""
        if isinstance(envelope, dict):
            try:
                envelope = Envelope.model_validate(envelope)
            except ValidationError as e:
                logger.warning("%s: malformed message dropped: %s", self.name, e)
                return False
        if envelope.sender != self.expected_sender:
            logger.warning(
                "%s: ignoring %s from unexpected sender %r",
                self.name, envelope.message.action, envelope.sender,
            )
            return False
        self.inbox.put_nowait(envelope)
        return True

    def send(self, peer: "ContextEndpoint", message: ChildReady | StartPlayback | PlaybackFinished) -> bool:
        logger.debug("%s -> %s: %s", self.name, peer.name, message.action)
        return peer.post(Envelope(sender=self.name, message=message))

    async def receive(self, kind: type[BaseModel]):
        """Wait for the next message of `kind`, skipping anything else."""
        while True:
            envelope = await self.inbox.get()
            if isinstance(envelope.message, kind):
                return envelope.message
            logger.warning(
                "%s: unexpected %s while waiting for %s",
                self.name, envelope.message.action, kind.__name__,
            )


# --- Capture ---


class CapturePermissionDenied(Exception):
    """The capture backend refused to capture the source context."""


class CaptureStream:
    """Frames captured from one MapSession between start() and stop()."""

    def __init__(self, source: MapSession) -> None:
        self.source = source
        self.frames: list[Image.Image] = []
        self.active = False
        self.ended = False
        self._ended_callbacks: list[Callable[[], object]] = []

    def on_ended(self, callback: Callable[[], object]) -> None:
        self._ended_callbacks.append(callback)

    def start(self) -> None:
        self.active = True
        self.source.on_frame(self._capture)

    def stop(self) -> list[Image.Image]:
        self.active = False
        self.source.remove_frame_listener(self._capture)
        return list(self.frames)

    def end(self) -> None:
        """The capture was revoked from outside. Partial frames are dropped."""
        if self.ended:
            return
        self.ended = True
        self.active = False
        self.source.remove_frame_listener(self._capture)
        self.frames.clear()
        logger.warning("Capture stream ended by the backend")
        for callback in list(self._ended_callbacks):
            callback()

    def _capture(self, frame: Frame) -> None:
        if self.active:
            self.frames.append(self.source.render().convert("P", palette=Image.Palette.ADAPTIVE))


class CaptureBackend(abc.ABC):
    @abc.abstractmethod
    def request_permission(self, source: MapSession) -> CaptureStream:
        """Return a stream for `source` or raise CapturePermissionDenied."""
        ...


class FrameCaptureBackend(CaptureBackend):
    """Captures rendered frames in-process. Always grants unless told not to."""

    def __init__(self, allow: bool = True) -> None:
        self.allow = allow
        self.streams: list[CaptureStream] = []

    def request_permission(self, source: MapSession) -> CaptureStream:
        if not self.allow:
            raise CapturePermissionDenied("capture not permitted")
        stream = CaptureStream(source)
        self.streams.append(stream)
        return stream


# --- Session ---


class RecordingOutcome:
    """Result of one recording attempt."""

    def __init__(
        self,
        status: str,
        path: Path | None = None,
        frame_count: int = 0,
        reason: str | None = None,
    ) -> None:
        self.status = status
        self.path = path
        self.frame_count = frame_count
        self.reason = reason

    @property
    def completed(self) -> bool:
        return self.status == "completed"

    def __repr__(self) -> str:
        if self.completed:
            return f"RecordingOutcome(completed: {self.frame_count} frames -> {self.path})"
        return f"RecordingOutcome(aborted: {self.reason})"


def recording_filename(name: str, when: datetime | None = None) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "-", name).strip("-").lower() or "map"
    stamp = (when or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return f"time-travel-{slug}-{stamp}.gif"


class SecondaryReplayer:
    """Drives the secondary context: ready, replay on command, report finish."""

    def __init__(self, session: MapSession, endpoint: ContextEndpoint, peer: ContextEndpoint) -> None:
        self.session = session
        self.endpoint = endpoint
        self.peer = peer

    async def run(self) -> None:
        self.session.start()
        self.endpoint.send(self.peer, ChildReady())

        command: StartPlayback = await self.endpoint.receive(StartPlayback)
        self.session.on_finished(lambda: self.endpoint.send(self.peer, PlaybackFinished()))
        self.session.apply_playback_params(
            start_year=command.start_year,
            speed=command.speed,
            show_parents=command.show_parents,
            show_callouts=command.show_callouts,
            mode=command.mode,
            autozoom=command.autozoom,
            center_lat=command.center_lat,
            center_lng=command.center_lng,
            zoom=command.zoom,
        )
        self.session.play(command.direction)
        await self.session.scheduler.wait_idle()


class RecordingSession:
    def __init__(
        self,
        primary: MapSession,
        backend: CaptureBackend,
        name: str = "map",
        output_dir: Path | None = None,
        config: Config | None = None,
    ) -> None:
        self.primary = primary
        self.backend = backend
        self.name = name
        self.config = config or primary.config
        self.output_dir = output_dir or self.config.resolved_output_dir
        self.primary_endpoint = ContextEndpoint("primary", expected_sender="recorder")
        self.secondary_endpoint = ContextEndpoint("recorder", expected_sender="primary")

    async def record(self) -> RecordingOutcome:
        child = MapSession(
            self.primary.dataset,
            self.config,
            mode=self.primary.mode,
            recording=True,
        )
        replayer = SecondaryReplayer(child, self.secondary_endpoint, self.primary_endpoint)
        replay_task = asyncio.create_task(replayer.run())
        try:
            return await self._coordinate(child, replay_task)
        finally:
            child.close()
            if not replay_task.done():
                replay_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await replay_task

    async def _coordinate(self, child: MapSession, replay_task: asyncio.Task) -> RecordingOutcome:
        try:
            await asyncio.wait_for(
                self.primary_endpoint.receive(ChildReady),
                timeout=self.config.recording.ready_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Recorder context never reported ready")
            return RecordingOutcome("aborted", reason="recorder not ready")

        try:
            command = StartPlayback(**self.primary.playback_params())
        except ValidationError as e:
            logger.warning("Recording aborted: invalid playback parameters: %s", e)
            return RecordingOutcome("aborted", reason="invalid playback parameters")

        try:
            stream = self.backend.request_permission(child)
        except CapturePermissionDenied as e:
            logger.warning("Recording aborted: %s", e)
            return RecordingOutcome("aborted", reason=str(e))

        revoked = asyncio.Event()
        stream.on_ended(revoked.set)
        stream.start()

        self.primary_endpoint.send(self.secondary_endpoint, command)

        finished = asyncio.create_task(self.primary_endpoint.receive(PlaybackFinished))
        ended = asyncio.create_task(revoked.wait())
        try:
            done, _ = await asyncio.wait(
                {finished, ended, replay_task}, return_when=asyncio.FIRST_COMPLETED,
            )
            if finished not in done and ended not in done:
                error = replay_task.exception()
                if error is not None:
                    stream.stop()
                    stream.frames.clear()
                    logger.warning("Recording aborted: recorder failed: %r", error)
                    return RecordingOutcome("aborted", reason=f"recorder failed: {error}")
                # a clean exit has already queued PLAYBACK_FINISHED
                await asyncio.wait({finished, ended}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (finished, ended):
                task.cancel()

        if stream.ended:
            logger.warning("Recording aborted: capture stream ended")
            return RecordingOutcome("aborted", reason="capture ended")

        frames = stream.stop()
        if not frames:
            return RecordingOutcome("aborted", reason="no frames captured")

        path = self.write_gif(frames)
        logger.info("Recorded %d frames to %s", len(frames), path)
        return RecordingOutcome("completed", path=path, frame_count=len(frames))

    def write_gif(self, frames: list[Image.Image]) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / recording_filename(self.name)
        frames[0].save(
            path,
            save_all=True,
            append_images=frames[1:],
            duration=self.config.recording.frame_duration_ms,
            loop=0,
        )
        return path
