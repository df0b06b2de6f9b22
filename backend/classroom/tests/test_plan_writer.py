"""
Unit tests for classroom/services/plan_writer.py and the plan serializers

The OpenAI client is mocked; no network calls are made.

Run with: python -m pytest classroom/tests/test_plan_writer.py -v
"""
import json
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from classroom.config import config
from classroom.errors import PlanGenerationFailure, TeacherGenerationFailure
from classroom.services.plan_writer import PlanWriterService
from classroom.types import VisualKind


# =============================================================================
# Test Fixtures
# =============================================================================

def make_plan_payload(section_count: int = 10, quiz_count: int = 3) -> dict:
    sections = [
        {
            "section_title": f"Step {i + 1}" if i < section_count - 1 else "What We Learned Today",
            "text": f"Let's look at step {i + 1} together.",
            "visual_prompts": [f"cute drawing for step {i + 1}"],
            "visual_type": "image" if i % 3 else "none",
        }
        for i in range(section_count)
    ]
    quizzes = [
        {
            "question": f"Which one is right {i + 1}?",
            "options": ["this", "that", "neither"],
            "answer": i % 3,
        }
        for i in range(quiz_count)
    ]
    return {
        "topic": "Rainbows",
        "learning_goal": "Explain why rainbows appear after rain.",
        "sections": sections,
        "quizzes": quizzes,
        "activities": [
            {
                "title": "Rainbow in a glass",
                "description": "Make your own rainbow.",
                "materials": ["glass", "water", "flashlight"],
                "steps": ["Fill the glass", "Shine the light"],
                "example_result_desc": "a rainbow on white paper",
            }
        ],
    }


def make_completion(content) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class PlanWriterTestCase(unittest.TestCase):

    def setUp(self):
        key_patch = patch.object(config, 'openai_api_key', 'sk-test')
        key_patch.start()
        self.addCleanup(key_patch.stop)

        openai_patch = patch('openai.OpenAI')
        self.mock_openai = openai_patch.start()
        self.addCleanup(openai_patch.stop)

        self.writer = PlanWriterService()
        self.create = self.writer.client.chat.completions.create

    def respond_with(self, payload):
        content = payload if isinstance(payload, str) else json.dumps(payload)
        self.create.return_value = make_completion(content)


# =============================================================================
# Plans
# =============================================================================

class TestGeneratePlan(PlanWriterTestCase):

    def test_valid_plan(self):
        self.respond_with(make_plan_payload())
        plan = self.writer.generate_plan("Rainbows", "Grade 3", "Cheerful", 3)

        self.assertEqual(plan.topic, "Rainbows")
        self.assertEqual(len(plan.sections), 10)
        self.assertEqual(len(plan.quizzes), 3)
        self.assertEqual(plan.sections[-1].title, "What We Learned Today")
        self.assertEqual(plan.sections[0].visual_kind, VisualKind.NONE)
        self.assertEqual(plan.sections[1].visual_kind, VisualKind.IMAGE)
        self.assertEqual(plan.quizzes[2].correct_index, 2)
        self.assertEqual(plan.activities[0].materials, ("glass", "water", "flashlight"))

    def test_request_uses_json_mode_and_prompt(self):
        self.respond_with(make_plan_payload(quiz_count=5))
        self.writer.generate_plan("Rainbows", "Grade 5", "Cheerful", 5)

        kwargs = self.create.call_args.kwargs
        self.assertEqual(kwargs['response_format'], {"type": "json_object"})
        self.assertEqual(kwargs['model'], config.plan_model)
        user_prompt = kwargs['messages'][1]['content']
        self.assertIn('"Rainbows"', user_prompt)
        self.assertIn("Grade 5", user_prompt)
        self.assertIn("exactly 5 quiz", user_prompt)

    def test_surplus_is_trimmed(self):
        self.respond_with(make_plan_payload(section_count=12, quiz_count=5))
        plan = self.writer.generate_plan("Rainbows", "Grade 3", "Cheerful", 3)
        self.assertEqual(len(plan.sections), 10)
        self.assertEqual(len(plan.quizzes), 3)

    def test_shortfall_fails(self):
        self.respond_with(make_plan_payload(section_count=10, quiz_count=2))
        with self.assertRaises(PlanGenerationFailure):
            self.writer.generate_plan("Rainbows", "Grade 3", "Cheerful", 3)

        self.respond_with(make_plan_payload(section_count=7))
        with self.assertRaises(PlanGenerationFailure):
            self.writer.generate_plan("Rainbows", "Grade 3", "Cheerful", 3)

    def test_out_of_range_answer_fails(self):
        payload = make_plan_payload()
        payload["quizzes"][1]["answer"] = 3
        self.respond_with(payload)
        with self.assertRaises(PlanGenerationFailure):
            self.writer.generate_plan("Rainbows", "Grade 3", "Cheerful", 3)

    def test_single_option_quiz_fails(self):
        payload = make_plan_payload()
        payload["quizzes"][0]["options"] = ["only"]
        payload["quizzes"][0]["answer"] = 0
        self.respond_with(payload)
        with self.assertRaises(PlanGenerationFailure):
            self.writer.generate_plan("Rainbows", "Grade 3", "Cheerful", 3)

    def test_invalid_json_fails(self):
        self.respond_with("{not json")
        with self.assertRaises(PlanGenerationFailure):
            self.writer.generate_plan("Rainbows", "Grade 3", "Cheerful", 3)

    def test_empty_response_fails(self):
        self.create.return_value = make_completion(None)
        with self.assertRaises(PlanGenerationFailure):
            self.writer.generate_plan("Rainbows", "Grade 3", "Cheerful", 3)

    def test_api_error_fails(self):
        self.create.side_effect = RuntimeError("rate limited")
        with self.assertRaises(PlanGenerationFailure):
            self.writer.generate_plan("Rainbows", "Grade 3", "Cheerful", 3)

    def test_missing_topic_falls_back_to_request(self):
        payload = make_plan_payload()
        del payload["topic"]
        self.respond_with(payload)
        plan = self.writer.generate_plan("Rainbows after rain", "Grade 3", "Cheerful", 3)
        self.assertEqual(plan.topic, "Rainbows after rain")

    def test_source_text_is_truncated(self):
        self.respond_with(make_plan_payload())
        with patch.object(config, 'source_text_limit', 12):
            self.writer.generate_plan_from_text("ABCDEFGHIJKL-this part is cut", "Grade 3", "Cheerful", 3)

        user_prompt = self.create.call_args.kwargs['messages'][1]['content']
        self.assertIn("ABCDEFGHIJKL", user_prompt)
        self.assertNotIn("this part is cut", user_prompt)


class TestUnavailableClient(unittest.TestCase):

    def test_missing_key_marks_unavailable(self):
        with patch.object(config, 'openai_api_key', ''):
            with self.assertLogs('classroom.services.plan_writer', level='ERROR'):
                writer = PlanWriterService()

        self.assertFalse(writer.available)
        with self.assertRaises(PlanGenerationFailure):
            writer.generate_plan("Rainbows", "Grade 3", "Cheerful", 3)


# =============================================================================
# Teachers
# =============================================================================

class TestGenerateTeacher(PlanWriterTestCase):

    def test_teacher_persona(self):
        self.respond_with({
            "name": "Dinosaur Teacher",
            "style": "Stomps around and roars facts",
            "voice_name": "Fenrir",
            "gender": "male",
            "color": "bg-green-500",
            "greeting": "Rawr! Hello, explorers!",
            "visual_desc": "a green dinosaur with glasses, full body character, vector illustration, white background",
            "background_prompt": "jungle classroom",
            "avatar_emoji": "\U0001F996",
        })
        teacher = self.writer.generate_teacher("dinosaur")

        self.assertEqual(teacher.name, "Dinosaur Teacher")
        self.assertEqual(teacher.voice_name, "Fenrir")
        self.assertEqual(teacher.avatar, "\U0001F996")
        self.assertTrue(teacher.id.startswith("custom-"))
        self.assertIsNone(teacher.custom_image_url)

    def test_unknown_voice_uses_default(self):
        self.respond_with({"name": "Robo", "style": "Beeps", "voice_name": "Alloy", "gender": "robot"})
        teacher = self.writer.generate_teacher("robot")
        self.assertEqual(teacher.voice_name, "Kore")
        self.assertEqual(teacher.gender, "female")

    def test_missing_name_fails(self):
        self.respond_with({"style": "Beeps"})
        with self.assertRaises(TeacherGenerationFailure):
            self.writer.generate_teacher("robot")


if __name__ == '__main__':
    unittest.main()
