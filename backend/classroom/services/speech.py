"""
Speech synthesis collaborators.

Two providers share one coroutine interface, ``generate_speech(text, voice)``:
- Gemini TTS (google-genai), raw 16-bit PCM with prebuilt voices
- Google Cloud Text-to-Speech, MP3

Provider errors leave this module as NarrationFailure subclasses so callers
can tell a quota stop from any other failure.
"""
import asyncio
import logging
from typing import Optional

from classroom.config import config
from classroom.errors import AudioPlaybackFailure, AudioQuotaExceeded, NarrationFailure
from classroom.types import TEACHER_VOICES, AudioBuffer

logger = logging.getLogger(__name__)

QUOTA_MARKERS = ('429', 'quota', 'limit', 'resource_exhausted', 'resource exhausted')


def classify_speech_error(error: BaseException) -> NarrationFailure:
    """Map any speech error onto AudioQuotaExceeded or AudioPlaybackFailure."""
    if isinstance(error, NarrationFailure):
        return error
    code = getattr(error, 'code', None)
    message = str(error)
    lowered = message.lower()
    if code == 429 or any(marker in lowered for marker in QUOTA_MARKERS):
        return AudioQuotaExceeded(message)
    return AudioPlaybackFailure(message or error.__class__.__name__)


class SpeechSource:
    """Interface for narration audio providers"""

    async def generate_speech(self, text: str, voice: str) -> AudioBuffer:
        raise NotImplementedError


class GeminiSpeechSource(SpeechSource):
    """Gemini TTS returning 24 kHz mono PCM"""

    def __init__(self):
        self.model = config.speech_model
        self.sample_rate = config.speech_sample_rate
        try:
            from google import genai
            from google.genai import types as genai_types
            if not config.google_ai_api_key:
                raise ValueError("GOOGLE_AI_API_KEY not set")
            self._types = genai_types
            self.client = genai.Client(api_key=config.google_ai_api_key)
            self.available = True
        except Exception as e:
            logger.error(f"Failed to initialize Gemini speech client: {e}")
            self._types = None
            self.client = None
            self.available = False

    async def generate_speech(self, text: str, voice: str) -> AudioBuffer:
        if not self.available:
            raise AudioPlaybackFailure("Gemini speech client not initialized")

        types = self._types
        speech_config = types.SpeechConfig(
            voice_config=types.VoiceConfig(
                prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice)
            )
        )
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=text,
                config=types.GenerateContentConfig(
                    response_modalities=["AUDIO"],
                    speech_config=speech_config,
                ),
            )
        except Exception as e:
            raise classify_speech_error(e) from e

        data = _first_inline_data(response)
        if not data:
            raise AudioPlaybackFailure("No audio generated")

        logger.debug(f"Synthesized {len(data)} PCM bytes for {len(text)} characters")
        return AudioBuffer(
            data=data,
            mime_type=f"audio/pcm;rate={self.sample_rate}",
            sample_rate=self.sample_rate,
            channels=1,
        )


def _first_inline_data(response) -> Optional[bytes]:
    for candidate in getattr(response, 'candidates', None) or []:
        content = getattr(candidate, 'content', None)
        for part in getattr(content, 'parts', None) or []:
            inline = getattr(part, 'inline_data', None)
            if inline is not None and inline.data:
                return inline.data
    return None


class CloudSpeechSource(SpeechSource):
    """Google Cloud Text-to-Speech returning MP3"""

    def __init__(self):
        self.language_code = config.cloud_tts_language_code
        self.default_voice = config.cloud_tts_voice
        try:
            from google.cloud import texttospeech
            self._tts = texttospeech
            self.tts_client = texttospeech.TextToSpeechClient()
            self.available = True
        except Exception as e:
            logger.error(f"Google TTS client initialization failed: {e}")
            self._tts = None
            self.tts_client = None
            self.available = False

    def _voice_name(self, voice: str) -> str:
        # Gemini prebuilt voice names are not Cloud TTS voices
        if not voice or voice in TEACHER_VOICES:
            return self.default_voice
        return voice

    def _synthesize(self, text: str, voice: str) -> bytes:
        texttospeech = self._tts
        response = self.tts_client.synthesize_speech(
            input=texttospeech.SynthesisInput(text=text),
            voice=texttospeech.VoiceSelectionParams(
                language_code=self.language_code,
                name=self._voice_name(voice),
            ),
            audio_config=texttospeech.AudioConfig(
                audio_encoding=texttospeech.AudioEncoding.MP3,
                speaking_rate=1.0,
                pitch=0.0,
            ),
        )
        return response.audio_content

    async def generate_speech(self, text: str, voice: str) -> AudioBuffer:
        if not self.available:
            raise AudioPlaybackFailure("Google TTS client not initialized")
        try:
            audio_content = await asyncio.to_thread(self._synthesize, text, voice)
        except Exception as e:
            raise classify_speech_error(e) from e
        if not audio_content:
            raise AudioPlaybackFailure("No audio generated")
        return AudioBuffer(
            data=audio_content,
            mime_type="audio/mpeg",
            sample_rate=config.speech_sample_rate,
            channels=1,
        )


# Global singleton
_speech_source: Optional[SpeechSource] = None


def get_speech_source() -> SpeechSource:
    """Get or create the configured speech provider"""
    global _speech_source
    if _speech_source is None:
        if config.speech_provider == 'google-cloud':
            _speech_source = CloudSpeechSource()
        else:
            _speech_source = GeminiSpeechSource()
    return _speech_source
