"""
Configuration for the classroom session engine.
"""
import os
from dataclasses import dataclass


@dataclass
class AppConfig:
    """Application configuration loaded from environment variables"""

    # Credentials
    openai_api_key: str
    google_ai_api_key: str

    # Models
    plan_model: str = "gpt-4o"
    image_model: str = "gemini-2.5-flash-image"
    speech_model: str = "gemini-2.5-flash-preview-tts"
    video_model: str = "veo-3.1-fast-generate-preview"

    # Speech
    speech_provider: str = "gemini"  # gemini | google-cloud
    cloud_tts_language_code: str = "ko-KR"
    cloud_tts_voice: str = "ko-KR-Neural2-A"
    speech_sample_rate: int = 24000
    narration_language: str = "en"  # en | ko

    # Lesson shape
    section_count: int = 10
    default_quiz_count: int = 3
    max_quiz_count: int = 10
    source_text_limit: int = 10000

    # Illustrations
    matte_threshold: int = 230
    matte_max_pixels: int = 16_000_000
    setup_image_timeout: float = 10.0
    image_max_retries: int = 3
    image_retry_backoff_seconds: float = 1.0

    # Video summary polling
    video_poll_interval: float = 5.0
    video_max_polls: int = 120

    # Narration cache (0 = unbounded)
    audio_cache_capacity: int = 256

    # Logging
    log_level: str = "INFO"


def load_config() -> AppConfig:
    """Load configuration from environment variables"""
    return AppConfig(
        openai_api_key=os.getenv('OPENAI_API_KEY', ''),
        google_ai_api_key=os.getenv('GOOGLE_AI_API_KEY', ''),

        plan_model=os.getenv('PLAN_MODEL', 'gpt-4o'),
        image_model=os.getenv('IMAGE_MODEL', 'gemini-2.5-flash-image'),
        speech_model=os.getenv('SPEECH_MODEL', 'gemini-2.5-flash-preview-tts'),
        video_model=os.getenv('VIDEO_MODEL', 'veo-3.1-fast-generate-preview'),

        speech_provider=os.getenv('SPEECH_PROVIDER', 'gemini'),
        cloud_tts_language_code=os.getenv('CLOUD_TTS_LANGUAGE_CODE', 'ko-KR'),
        cloud_tts_voice=os.getenv('CLOUD_TTS_VOICE', 'ko-KR-Neural2-A'),
        speech_sample_rate=int(os.getenv('SPEECH_SAMPLE_RATE', '24000')),
        narration_language=os.getenv('NARRATION_LANGUAGE', 'en'),

        section_count=int(os.getenv('SECTION_COUNT', '10')),
        default_quiz_count=int(os.getenv('DEFAULT_QUIZ_COUNT', '3')),
        max_quiz_count=int(os.getenv('MAX_QUIZ_COUNT', '10')),
        source_text_limit=int(os.getenv('SOURCE_TEXT_LIMIT', '10000')),

        matte_threshold=int(os.getenv('MATTE_THRESHOLD', '230')),
        matte_max_pixels=int(os.getenv('MATTE_MAX_PIXELS', '16000000')),
        setup_image_timeout=float(os.getenv('SETUP_IMAGE_TIMEOUT', '10.0')),
        image_max_retries=int(os.getenv('IMAGE_MAX_RETRIES', '3')),
        image_retry_backoff_seconds=float(os.getenv('IMAGE_RETRY_BACKOFF_SECONDS', '1.0')),

        video_poll_interval=float(os.getenv('VIDEO_POLL_INTERVAL', '5.0')),
        video_max_polls=int(os.getenv('VIDEO_MAX_POLLS', '120')),

        audio_cache_capacity=int(os.getenv('AUDIO_CACHE_CAPACITY', '256')),

        log_level=os.getenv('LOG_LEVEL', 'INFO'),
    )


# Global config instance
config = load_config()
