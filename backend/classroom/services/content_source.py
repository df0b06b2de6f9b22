"""
Content source - the async facade the session controller talks to.

Combines the plan writer (OpenAI, run in a worker thread) and the media
generator (google-genai) behind one coroutine interface, and applies the
retry policy for section illustrations.
"""
import asyncio
import base64
import binascii
import logging
from typing import Optional

import requests

from classroom.config import config
from classroom.errors import ImageGenerationFailure, SourceFileReadFailure
from classroom.prompts import video_summary_prompt
from classroom.services.media_generator import MediaGeneratorService, get_media_generator
from classroom.services.plan_writer import PlanWriterService, get_plan_writer
from classroom.types import LessonPlan, Teacher
from classroom.utils.retry import linear_backoff, retry_async

logger = logging.getLogger(__name__)

IMAGE_DOWNLOAD_TIMEOUT = 15


def decode_source_file(file_data: str) -> str:
    """
    Decode base64 file contents as UTF-8 text.

    Raises:
        SourceFileReadFailure: if the payload is not base64 UTF-8 text
    """
    payload = file_data.split(',', 1)[1] if file_data.startswith('data:') else file_data
    try:
        text = base64.b64decode(payload, validate=True).decode('utf-8')
    except (binascii.Error, ValueError) as e:
        raise SourceFileReadFailure(f"Could not read the lesson file: {e}") from e
    if not text.strip():
        raise SourceFileReadFailure("The lesson file is empty")
    return text


class ContentSource:
    """Plans, images, videos and teacher personas for a session"""

    def __init__(
        self,
        plan_writer: Optional[PlanWriterService] = None,
        media_generator: Optional[MediaGeneratorService] = None,
    ):
        self.plan_writer = plan_writer or get_plan_writer()
        self.media_generator = media_generator or get_media_generator()

    @property
    def available(self) -> dict:
        return {
            'plans': self.plan_writer.available,
            'media': self.media_generator.available,
        }

    async def generate_plan(self, topic: str, grade: str, teacher_style: str, quiz_count: int) -> LessonPlan:
        return await asyncio.to_thread(
            self.plan_writer.generate_plan, topic, grade, teacher_style, quiz_count
        )

    async def generate_plan_from_text(
        self,
        source_text: str,
        grade: str,
        teacher_style: str,
        quiz_count: int,
    ) -> LessonPlan:
        return await asyncio.to_thread(
            self.plan_writer.generate_plan_from_text, source_text, grade, teacher_style, quiz_count
        )

    async def generate_teacher(self, keyword: str) -> Teacher:
        return await asyncio.to_thread(self.plan_writer.generate_teacher, keyword)

    async def generate_image(self, prompt: str) -> bytes:
        """Generate an image, retrying with linear backoff."""
        return await retry_async(
            lambda: self.media_generator.generate_image(prompt),
            attempts=config.image_max_retries,
            backoff=linear_backoff(config.image_retry_backoff_seconds),
            retry_on=(ImageGenerationFailure,),
            label="image generation",
        )

    async def generate_image_once(self, prompt: str) -> bytes:
        """Single attempt, for callers that enforce their own timeout."""
        return await self.media_generator.generate_image(prompt)

    async def generate_video_summary(self, topic: str) -> str:
        logger.info(f"Generating video summary for: {topic}")
        return await self.media_generator.generate_video(video_summary_prompt(topic))

    async def download_image(self, url: str) -> bytes:
        """Fetch a custom avatar image from a URL."""
        def _download() -> bytes:
            response = requests.get(url, timeout=IMAGE_DOWNLOAD_TIMEOUT)
            response.raise_for_status()
            return response.content

        try:
            return await asyncio.to_thread(_download)
        except requests.RequestException as e:
            raise ImageGenerationFailure(f"Could not download image: {e}") from e


# Global singleton
_content_source: Optional[ContentSource] = None


def get_content_source() -> ContentSource:
    """Get or create the global content source"""
    global _content_source
    if _content_source is None:
        _content_source = ContentSource()
    return _content_source
