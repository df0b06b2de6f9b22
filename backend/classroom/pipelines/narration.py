"""
Narration engine: cached, deduplicated speech with race-safe playback.

Only the most recent ``play`` request may become audible. Audio for every
distinct text is fetched at most once per lesson; concurrent requests for
the same text share one in-flight fetch.
"""
import asyncio
import logging
from collections import OrderedDict
from typing import Dict, Optional, Tuple

from classroom.config import config
from classroom.errors import AudioQuotaExceeded, NarrationFailure
from classroom.services.speech import SpeechSource, classify_speech_error
from classroom.types import AudioBuffer
from classroom.utils.epoch import EpochGuard

logger = logging.getLogger(__name__)


class AudioSink:
    """Makes narration audible. Implemented by the host surface."""

    async def play(self, clip_id: int, buffer: AudioBuffer) -> None:
        raise NotImplementedError

    async def stop(self, clip_id: int) -> None:
        raise NotImplementedError


class NullAudioSink(AudioSink):
    """Sink that plays nothing; used when no host is attached."""

    async def play(self, clip_id: int, buffer: AudioBuffer) -> None:
        pass

    async def stop(self, clip_id: int) -> None:
        pass


class NarrationEngine:
    """Speech cache, pending-fetch map and live token for one session"""

    def __init__(
        self,
        speech_source: SpeechSource,
        sink: Optional[AudioSink] = None,
        voice: str = "Kore",
        cache_capacity: Optional[int] = None,
    ):
        self.speech_source = speech_source
        self.sink = sink or NullAudioSink()
        self.voice = voice
        self.cache_capacity = config.audio_cache_capacity if cache_capacity is None else cache_capacity

        self._cache: "OrderedDict[str, AudioBuffer]" = OrderedDict()
        self._pending: Dict[str, asyncio.Future] = {}
        self._prefetches = set()
        self._fetches = set()

        # Fetches started before a reset must not write into the new cache
        self._generation = EpochGuard()
        # Live token is (text, play epoch)
        self._play_guard = EpochGuard()
        self._live_text: Optional[str] = None

        self._clip_guard = EpochGuard()
        self._current_clip: Optional[int] = None

        self.is_playing = False
        self.last_error: Optional[str] = None
        self.last_error_kind: Optional[str] = None

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def live_token(self) -> Optional[Tuple[str, int]]:
        if self._live_text is None:
            return None
        return (self._live_text, self._play_guard.current)

    @property
    def current_clip(self) -> Optional[int]:
        return self._current_clip

    def is_cached(self, text: str) -> bool:
        return text in self._cache

    def is_pending(self, text: str) -> bool:
        return text in self._pending

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_error(self) -> None:
        self.last_error = None
        self.last_error_kind = None

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def resolve_audio(self, text: str) -> AudioBuffer:
        """
        Return the audio for ``text``, fetching it at most once.

        Raises:
            AudioQuotaExceeded: the speech provider hit a rate or quota limit
            AudioPlaybackFailure: any other speech failure
        """
        cached = self._cache.get(text)
        if cached is not None:
            self._cache.move_to_end(text)
            return cached

        task = self._pending.get(text)
        if task is None:
            task = asyncio.ensure_future(self._fetch(text, self._generation.current))
            task.add_done_callback(_consume_exception)
            task.add_done_callback(self._fetches.discard)
            self._fetches.add(task)
            self._pending[text] = task
            logger.debug(f"Fetching narration ({len(text)} chars), {len(self._pending)} pending")

        # One caller going away must not cancel the shared fetch
        return await asyncio.shield(task)

    async def _fetch(self, text: str, generation: int) -> AudioBuffer:
        try:
            buffer = await self.speech_source.generate_speech(text, self.voice)
        except Exception as e:
            raise classify_speech_error(e) from e
        finally:
            if self._generation.is_current(generation):
                self._pending.pop(text, None)

        if self._generation.is_current(generation):
            self._store(text, buffer)
        else:
            logger.debug("Discarding narration fetched before the last reset")
        return buffer

    def _store(self, text: str, buffer: AudioBuffer) -> None:
        self._cache[text] = buffer
        self._cache.move_to_end(text)
        if self.cache_capacity > 0:
            while len(self._cache) > self.cache_capacity:
                evicted, _ = self._cache.popitem(last=False)
                logger.debug(f"Evicted narration from cache ({len(evicted)} chars)")

    def prefetch(self, text: str) -> Optional[asyncio.Task]:
        """Warm the cache for ``text``. Errors are logged, never raised."""
        if not text or text in self._cache:
            return None
        task = asyncio.ensure_future(self._prefetch(text))
        self._prefetches.add(task)
        task.add_done_callback(self._prefetches.discard)
        return task

    async def _prefetch(self, text: str) -> None:
        try:
            await self.resolve_audio(text)
        except NarrationFailure as e:
            logger.warning(f"Narration prefetch failed: {e}")

    @property
    def has_background_work(self) -> bool:
        return bool(self._prefetches)

    async def drain(self) -> None:
        """Wait for outstanding prefetches."""
        if self._prefetches:
            await asyncio.gather(*list(self._prefetches), return_exceptions=True)

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    async def play(self, text: str) -> bool:
        """
        Make ``text`` the live utterance and play it once its audio resolves.

        Returns:
            True if the clip was handed to the sink, False if it failed or
            was superseded by a newer play/stop before its audio arrived
        """
        epoch = self._play_guard.advance()
        self._live_text = text
        await self._silence()
        if not self._play_guard.is_current(epoch):
            return False
        self.clear_error()

        try:
            buffer = await self.resolve_audio(text)
        except NarrationFailure as e:
            if self._play_guard.is_current(epoch):
                self.is_playing = False
                self.last_error = e.user_message
                self.last_error_kind = 'quota' if isinstance(e, AudioQuotaExceeded) else 'playback'
                logger.warning(f"Narration failed ({self.last_error_kind}): {e}")
            return False

        if not self._play_guard.is_current(epoch):
            logger.debug("Discarding superseded narration")
            return False

        clip_id = self._clip_guard.advance()
        self._current_clip = clip_id
        self.is_playing = True
        await self.sink.play(clip_id, buffer)
        return True

    async def stop(self) -> None:
        """Halt audible playback and retire the live token. Idempotent."""
        self._play_guard.advance()
        self._live_text = None
        await self._silence()

    async def _silence(self) -> None:
        clip_id = self._current_clip
        self._current_clip = None
        self.is_playing = False
        if clip_id is not None:
            await self.sink.stop(clip_id)

    def playback_finished(self, clip_id: int) -> bool:
        """Host report that ``clip_id`` ended; stale reports are ignored."""
        if clip_id != self._current_clip:
            return False
        self._current_clip = None
        self.is_playing = False
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Drop cached and pending audio for a new lesson. Synchronous."""
        self._generation.advance()
        self._play_guard.advance()
        self._live_text = None
        self._cache.clear()
        self._pending.clear()
        self.clear_error()
        logger.debug("Narration cache reset")

    async def close(self) -> None:
        await self.stop()
        self.reset()
        for task in list(self._prefetches) + list(self._fetches):
            task.cancel()
        self._prefetches.clear()
        self._fetches.clear()


def _consume_exception(task: asyncio.Future) -> None:
    # Failed fetches nobody awaits must not log "exception was never retrieved"
    if not task.cancelled():
        task.exception()
