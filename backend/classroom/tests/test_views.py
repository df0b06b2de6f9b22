"""
Unit tests for classroom/views.py

Views are called directly with RequestFactory; services are mocked.

Run with: python -m pytest classroom/tests/test_views.py -v
"""
import io
import json
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from django.test import RequestFactory
from PIL import Image

from classroom import views
from classroom.errors import TeacherGenerationFailure
from classroom.types import DEFAULT_TEACHER


def make_png(size=(12, 12), color=(255, 255, 255)) -> bytes:
    out = io.BytesIO()
    Image.new('RGB', size, color).save(out, format='PNG')
    return out.getvalue()


class TestHealthCheck(unittest.TestCase):

    def setUp(self):
        self.factory = RequestFactory()

    @patch('classroom.views.get_speech_source')
    @patch('classroom.views.get_content_source')
    def test_all_available(self, mock_content, mock_speech):
        mock_content.return_value = SimpleNamespace(
            plan_writer=SimpleNamespace(available=True),
            media_generator=SimpleNamespace(available=True),
        )
        mock_speech.return_value = SimpleNamespace(available=True)

        response = views.health_check(self.factory.get('/api/classroom/health/'))
        body = json.loads(response.content)

        self.assertEqual(response.status_code, 200)
        self.assertTrue(body['ok'])
        self.assertTrue(body['services']['speech']['available'])

    @patch('classroom.views.get_speech_source')
    @patch('classroom.views.get_content_source')
    def test_missing_service_is_503(self, mock_content, mock_speech):
        mock_content.return_value = SimpleNamespace(
            plan_writer=SimpleNamespace(available=False),
            media_generator=SimpleNamespace(available=True),
        )
        mock_speech.return_value = SimpleNamespace(available=True)

        response = views.health_check(self.factory.get('/api/classroom/health/'))
        self.assertEqual(response.status_code, 503)
        self.assertFalse(json.loads(response.content)['ok'])


class TestGenerateTeacherView(unittest.TestCase):

    def setUp(self):
        self.factory = RequestFactory()

    def post(self, body):
        request = self.factory.post(
            '/api/classroom/teachers/generate/',
            data=body if isinstance(body, str) else json.dumps(body),
            content_type='application/json',
        )
        return views.generate_teacher_view(request)

    @patch('classroom.views.get_content_source')
    def test_returns_teacher(self, mock_content):
        mock_content.return_value = SimpleNamespace(generate_teacher=AsyncMock(return_value=DEFAULT_TEACHER))

        response = self.post({"keyword": "owl"})
        body = json.loads(response.content)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(body['teacher']['name'], DEFAULT_TEACHER.name)
        mock_content.return_value.generate_teacher.assert_awaited_once_with("owl")

    @patch('classroom.views.get_content_source')
    def test_generation_failure_is_502(self, mock_content):
        mock_content.return_value = SimpleNamespace(
            generate_teacher=AsyncMock(side_effect=TeacherGenerationFailure("bad output"))
        )
        response = self.post({"keyword": "owl"})
        self.assertEqual(response.status_code, 502)

    def test_keyword_is_required(self):
        response = self.post({})
        self.assertEqual(response.status_code, 400)
        self.assertIn('keyword', json.loads(response.content)['errors'])

    def test_invalid_json(self):
        self.assertEqual(self.post("{nope").status_code, 400)

    def test_get_is_rejected(self):
        response = views.generate_teacher_view(self.factory.get('/api/classroom/teachers/generate/'))
        self.assertEqual(response.status_code, 400)


class TestMatteView(unittest.TestCase):

    def setUp(self):
        self.factory = RequestFactory()

    def test_background_becomes_transparent(self):
        request = self.factory.post('/api/classroom/matte/', data=make_png(), content_type='image/png')
        response = views.matte_view(request)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'image/png')
        with Image.open(io.BytesIO(response.content)) as image:
            self.assertEqual(image.convert('RGBA').getpixel((0, 0))[3], 0)

    def test_invalid_image_is_echoed(self):
        request = self.factory.post('/api/classroom/matte/', data=b"not an image", content_type='image/jpeg')
        response = views.matte_view(request)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"not an image")
        self.assertEqual(response['Content-Type'], 'image/jpeg')

    def test_empty_body_is_rejected(self):
        request = self.factory.post('/api/classroom/matte/', data=b"", content_type='image/png')
        self.assertEqual(views.matte_view(request).status_code, 400)


if __name__ == '__main__':
    unittest.main()
