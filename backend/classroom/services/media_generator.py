"""
Media generator service - classroom images and summary videos via google-genai.

Each call is a single attempt; retry and polling policy lives with the
callers (see classroom.utils.retry).
"""
import logging
from typing import Optional, Tuple

from classroom.config import config
from classroom.errors import ImageGenerationFailure, VideoGenerationFailure
from classroom.utils.retry import poll_until_ready

logger = logging.getLogger(__name__)


class MediaGeneratorService:
    """Gemini image generation and Veo video generation"""

    def __init__(self):
        self.image_model = config.image_model
        self.video_model = config.video_model
        try:
            from google import genai
            from google.genai import types as genai_types
            if not config.google_ai_api_key:
                raise ValueError("GOOGLE_AI_API_KEY not set")
            self._types = genai_types
            self.client = genai.Client(api_key=config.google_ai_api_key)
            self.available = True
        except Exception as e:
            logger.error(f"Failed to initialize Gemini media client: {e}")
            self._types = None
            self.client = None
            self.available = False

    async def generate_image(self, prompt: str) -> bytes:
        """
        Generate one image for a prompt.

        Returns:
            Encoded image bytes (PNG or JPEG)

        Raises:
            ImageGenerationFailure: on API errors or when no image comes back
        """
        if not self.available:
            raise ImageGenerationFailure("Gemini media client not initialized")

        try:
            response = await self.client.aio.models.generate_content(
                model=self.image_model,
                contents=prompt,
                config=self._types.GenerateContentConfig(response_modalities=["IMAGE"]),
            )
        except Exception as e:
            raise ImageGenerationFailure(f"Image request failed: {e}") from e

        image = _first_image(response)
        if image is None:
            raise ImageGenerationFailure("No image generated")
        data, mime_type = image
        logger.debug(f"Generated {mime_type} image ({len(data)} bytes)")
        return data

    async def generate_video(self, prompt: str) -> str:
        """
        Submit a Veo job and poll it until the video is ready.

        Returns:
            Download URL for the generated video

        Raises:
            VideoGenerationFailure: on API errors, job errors or poll timeout
        """
        if not self.available:
            raise VideoGenerationFailure("Gemini media client not initialized")

        types = self._types
        try:
            operation = await self.client.aio.models.generate_videos(
                model=self.video_model,
                prompt=prompt,
                config=types.GenerateVideosConfig(
                    number_of_videos=1,
                    resolution="720p",
                    aspect_ratio="16:9",
                ),
            )
            logger.info(f"Video job submitted: {getattr(operation, 'name', '?')}")
            operation = await poll_until_ready(
                refresh=lambda op: self.client.aio.operations.get(op),
                initial=operation,
                is_ready=lambda op: bool(op.done),
                interval=config.video_poll_interval,
                max_polls=config.video_max_polls,
                label="video summary",
            )
        except TimeoutError as e:
            raise VideoGenerationFailure(str(e)) from e
        except Exception as e:
            raise VideoGenerationFailure(f"Video request failed: {e}") from e

        if getattr(operation, 'error', None):
            raise VideoGenerationFailure(f"Video job failed: {operation.error}")

        response = getattr(operation, 'response', None)
        videos = getattr(response, 'generated_videos', None) or []
        uri = videos[0].video.uri if videos and videos[0].video else None
        if not uri:
            raise VideoGenerationFailure("Video generation failed")

        separator = '&' if '?' in uri else '?'
        return f"{uri}{separator}key={config.google_ai_api_key}"


def _first_image(response) -> Optional[Tuple[bytes, str]]:
    for candidate in getattr(response, 'candidates', None) or []:
        content = getattr(candidate, 'content', None)
        for part in getattr(content, 'parts', None) or []:
            inline = getattr(part, 'inline_data', None)
            if inline is not None and inline.data:
                return inline.data, inline.mime_type or 'image/png'
    return None


# Global singleton
_media_generator: Optional[MediaGeneratorService] = None


def get_media_generator() -> MediaGeneratorService:
    """Get or create the global media generator"""
    global _media_generator
    if _media_generator is None:
        _media_generator = MediaGeneratorService()
    return _media_generator
