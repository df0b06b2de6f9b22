"""
Unit tests for classroom/services/content_source.py and
classroom/utils/narration_text.py

Run with: python -m pytest classroom/tests/test_content_source.py -v
"""
import base64
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import requests

from classroom.errors import ImageGenerationFailure, SourceFileReadFailure
from classroom.services.content_source import ContentSource, decode_source_file
from classroom.types import QuizItem
from classroom.utils.narration_text import lesson_intro, quiz_finished, quiz_narration


def make_source(media=None, writer=None) -> ContentSource:
    return ContentSource(
        plan_writer=writer or SimpleNamespace(available=True),
        media_generator=media or SimpleNamespace(available=True),
    )


class TestDecodeSourceFile(unittest.TestCase):

    def test_utf8_text(self):
        encoded = base64.b64encode("Photosynthesis needs light.".encode('utf-8')).decode('ascii')
        self.assertEqual(decode_source_file(encoded), "Photosynthesis needs light.")

    def test_data_url_prefix(self):
        encoded = base64.b64encode("지구는 둥글다".encode('utf-8')).decode('ascii')
        self.assertEqual(decode_source_file(f"data:text/plain;base64,{encoded}"), "지구는 둥글다")

    def test_binary_is_rejected(self):
        encoded = base64.b64encode(b"\x89PNG\r\n\x1a\n\xff\xff").decode('ascii')
        with self.assertRaises(SourceFileReadFailure):
            decode_source_file(encoded)

    def test_invalid_base64_is_rejected(self):
        with self.assertRaises(SourceFileReadFailure):
            decode_source_file("***not base64***")

    def test_blank_file_is_rejected(self):
        with self.assertRaises(SourceFileReadFailure):
            decode_source_file(base64.b64encode(b"   \n").decode('ascii'))


@patch('classroom.utils.retry.asyncio.sleep', new_callable=AsyncMock)
class TestGenerateImage(unittest.IsolatedAsyncioTestCase):

    async def test_retries_with_linear_backoff(self, mock_sleep):
        media = SimpleNamespace(
            available=True,
            generate_image=AsyncMock(side_effect=[
                ImageGenerationFailure("empty"),
                ImageGenerationFailure("empty"),
                b"png-bytes",
            ]),
        )
        source = make_source(media=media)

        self.assertEqual(await source.generate_image("a cat"), b"png-bytes")
        self.assertEqual(media.generate_image.await_count, 3)
        self.assertEqual([c.args[0] for c in mock_sleep.await_args_list], [1.0, 2.0])

    async def test_gives_up_after_three_attempts(self, mock_sleep):
        media = SimpleNamespace(
            available=True,
            generate_image=AsyncMock(side_effect=ImageGenerationFailure("empty")),
        )
        with self.assertRaises(ImageGenerationFailure):
            await make_source(media=media).generate_image("a cat")
        self.assertEqual(media.generate_image.await_count, 3)

    async def test_setup_images_are_single_attempt(self, mock_sleep):
        media = SimpleNamespace(
            available=True,
            generate_image=AsyncMock(side_effect=ImageGenerationFailure("empty")),
        )
        with self.assertRaises(ImageGenerationFailure):
            await make_source(media=media).generate_image_once("a cat")
        self.assertEqual(media.generate_image.await_count, 1)


class TestDownloadImage(unittest.IsolatedAsyncioTestCase):

    @patch('classroom.services.content_source.requests.get')
    async def test_download(self, mock_get):
        mock_get.return_value = MagicMock(content=b"jpeg-bytes")
        data = await make_source().download_image("https://img.example/me.jpg")
        self.assertEqual(data, b"jpeg-bytes")

    @patch('classroom.services.content_source.requests.get')
    async def test_download_error_is_image_failure(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("offline")
        with self.assertRaises(ImageGenerationFailure):
            await make_source().download_image("https://img.example/me.jpg")


class TestNarrationText(unittest.TestCase):

    def setUp(self):
        self.quiz = QuizItem(question="Which is hot", options=("lava", "snow"), correct_index=0)

    def test_quiz_narration_english(self):
        self.assertEqual(
            quiz_narration(0, self.quiz, 'en'),
            "Question 1. Which is hot. 1, lava. 2, snow. Pick the answer.",
        )

    def test_quiz_narration_korean(self):
        self.assertEqual(
            quiz_narration(2, self.quiz, 'ko'),
            "문제 3번. Which is hot. 1번, lava. 2번, snow. 정답을 골라봐.",
        )

    def test_same_inputs_same_text(self):
        self.assertEqual(quiz_narration(1, self.quiz, 'en'), quiz_narration(1, self.quiz, 'en'))

    def test_intro_and_finish(self):
        self.assertEqual(
            lesson_intro("Hi!", "volcanoes", 'en'),
            "Hi! Today we are going to learn about volcanoes. Watch the board closely.",
        )
        self.assertEqual(
            quiz_finished(2, 3, 'ko'),
            "모든 퀴즈가 끝났어. 3문제 중에 2문제를 맞췄구나! 참 잘했어!",
        )

    def test_unknown_language_falls_back_to_english(self):
        self.assertTrue(quiz_narration(0, self.quiz, 'fr').startswith("Question 1."))


if __name__ == '__main__':
    unittest.main()
