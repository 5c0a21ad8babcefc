"""Playback resilience: one live stream, reconnected with bounded backoff.

The manager does not decode audio. It drives an ``AudioOutput`` and is told
what happened through the ``on_*`` event methods. Retry timers go through an
injectable ``Scheduler`` so the state machine runs the same way under asyncio
and in tests. The HTTP app does not import this module; it is a library
entry point for the UI layer.
"""

import asyncio
from functools import partial
from typing import Callable, List, Optional, Protocol, Sequence

from loguru import logger

from globalfm import config
from globalfm.errors import PlaybackExhausted, PlaybackStallFailure
from globalfm.models import PlaybackSession, PlaybackState, Station
from globalfm.search import next_station, previous_station


class AudioOutput(Protocol):
    def load(self, url: str) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def stop(self) -> None: ...

    def set_volume(self, level: float) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


StateListener = Callable[[PlaybackState, Optional[PlaybackSession]], None]


def backoff_delay(
    attempt: int,
    base: float = config.RETRY_BASE_DELAY,
    cap: float = config.RETRY_MAX_DELAY,
) -> float:
    """Seconds to wait before reconnect ``attempt`` (1-based)."""
    return min(base * 2 ** (attempt - 1), cap)


class PlaybackManager:
    def __init__(
        self,
        output: AudioOutput,
        scheduler: Optional[Scheduler] = None,
        max_retries: int = config.MAX_RETRIES,
        base_delay: float = config.RETRY_BASE_DELAY,
        max_delay: float = config.RETRY_MAX_DELAY,
        volume: int = config.DEFAULT_VOLUME,
    ):
        self.output = output
        self.scheduler = scheduler or AsyncioScheduler()
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay

        self.session: Optional[PlaybackSession] = None
        self._timer: Optional[TimerHandle] = None
        self._listeners: List[StateListener] = []

        self.volume = volume
        self.muted = False
        self._previous_volume = volume
        self._apply_volume()

    @property
    def state(self) -> PlaybackState:
        return self.session.state if self.session else PlaybackState.IDLE

    @property
    def error(self) -> Optional[str]:
        return self.session.error if self.session else None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # --- USER ACTIONS ---

    def select(self, station: Station) -> PlaybackSession:
        """Bind a station. Any previous session and its pending retry are dropped."""
        self._cancel_timer()
        logger.info(f"Loading station: {station.name} ({station.stream_url})")

        self.session = PlaybackSession(station=station)
        self.output.pause()
        self.output.load(station.stream_url)
        self._transition(PlaybackState.LOADING)
        return self.session

    def pause(self) -> None:
        self._cancel_timer()
        self.output.pause()
        if self.session is not None:
            self.session.is_reconnecting = False
        self._transition(PlaybackState.IDLE)

    def resume(self) -> Optional[PlaybackSession]:
        if self.session is None:
            return None
        return self.select(self.session.station)

    def close(self) -> None:
        self._cancel_timer()
        self.output.stop()
        self.session = None
        self._notify()

    def next(self, catalog: Sequence[Station]) -> Optional[PlaybackSession]:
        current = self.session.station if self.session else None
        station = next_station(catalog, current)
        return self.select(station) if station else None

    def previous(self, catalog: Sequence[Station]) -> Optional[PlaybackSession]:
        current = self.session.station if self.session else None
        station = previous_station(catalog, current)
        return self.select(station) if station else None

    def set_volume(self, volume: int) -> None:
        self.volume = max(0, min(100, int(volume)))
        if self.volume > 0 and self.muted:
            self.muted = False
        if self.volume == 0:
            self.muted = True
        self._apply_volume()

    def toggle_mute(self) -> None:
        if self.muted:
            self.muted = False
            self.volume = self._previous_volume if self._previous_volume > 0 else config.DEFAULT_VOLUME
        else:
            self._previous_volume = self.volume
            self.muted = True
        self._apply_volume()

    # --- OUTPUT EVENTS ---

    def on_ready(self) -> None:
        """The bound stream buffered enough to start."""
        if not self._active():
            return
        try:
            self.output.play()
        except Exception as e:
            logger.error(f"Playback failed: {e}")
            self._begin_reconnect(PlaybackStallFailure(str(e)), PlaybackState.ERRORED)
            return
        self.on_playing()

    def on_playing(self) -> None:
        session = self.session
        if not self._active():
            return
        session.has_ever_played = True
        session.retry_count = 0
        session.is_reconnecting = False
        session.error = None
        if session.state != PlaybackState.PLAYING:
            logger.info(f"Playback active: {session.station.name}")
            self._transition(PlaybackState.PLAYING)

    def on_stall(self) -> None:
        session = self.session
        if not self._active() or session.is_reconnecting:
            return
        # a stream that never started is still buffering, not stalled
        if not session.has_ever_played:
            return
        logger.warning("Stream stalled - attempting recovery")
        self._begin_reconnect(PlaybackStallFailure("stalled"), PlaybackState.STALLED)

    def on_error(self, message: str = "") -> None:
        session = self.session
        if not self._active() or session.is_reconnecting:
            return
        logger.error(f"Audio error occurred: {message or 'unknown'}")
        self._begin_reconnect(PlaybackStallFailure(message or "error"), PlaybackState.ERRORED)

    def on_paused(self) -> None:
        if self.state == PlaybackState.PLAYING:
            self._transition(PlaybackState.IDLE)

    def on_ended(self) -> None:
        if self.session is None:
            return
        self.session.has_ever_played = False
        self._transition(PlaybackState.IDLE)

    # --- RECONNECT MACHINE ---

    def _active(self) -> bool:
        return self.session is not None and self.session.state not in (
            PlaybackState.IDLE,
            PlaybackState.FAILED,
        )

    def _begin_reconnect(self, failure: PlaybackStallFailure, state: PlaybackState) -> None:
        session = self.session
        session.error = str(failure)
        self._transition(state)

        session.retry_count += 1
        if session.retry_count > self.max_retries:
            exhausted = PlaybackExhausted(self.max_retries)
            logger.error(f"Max retries reached, giving up on {session.station.name}")
            self.output.stop()
            session.is_reconnecting = False
            session.error = exhausted.message
            self._transition(PlaybackState.FAILED)
            return

        delay = backoff_delay(session.retry_count, self.base_delay, self.max_delay)
        logger.info(f"Reconnection attempt {session.retry_count}/{self.max_retries} in {delay:.0f}s")
        session.is_reconnecting = True
        self._cancel_timer()
        self._timer = self.scheduler.call_later(delay, partial(self._reload, session))
        self._transition(PlaybackState.RECONNECTING)

    def _reload(self, session: PlaybackSession) -> None:
        if session is not self.session:
            return
        self._timer = None
        session.is_reconnecting = False
        logger.info(f"Reconnecting to: {session.station.name}")
        self.output.stop()
        self.output.load(session.station.stream_url)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _apply_volume(self) -> None:
        self.output.set_volume(0.0 if self.muted else self.volume / 100)

    def _transition(self, state: PlaybackState) -> None:
        if self.session is not None:
            self.session.state = state
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.state, self.session)
