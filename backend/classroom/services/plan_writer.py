"""
Plan writer service - lesson plans and teacher personas from OpenAI.

The OpenAI client is synchronous; callers on the event loop run these
methods through ``asyncio.to_thread``.
"""
import json
import logging
from typing import Any, Dict, Optional

from classroom.config import config
from classroom.errors import PlanGenerationFailure, TeacherGenerationFailure
from classroom.prompts import (
    LESSON_PLAN_SYSTEM_PROMPT,
    TEACHER_SYSTEM_PROMPT,
    build_plan_from_text_prompt,
    build_plan_prompt,
    build_teacher_prompt,
)
from classroom.serializers import (
    LessonPlanSerializer,
    TeacherSerializer,
    lesson_plan_from_data,
    teacher_from_data,
)
from classroom.types import DEFAULT_TEACHER, TEACHER_VOICES, LessonPlan, Teacher

logger = logging.getLogger(__name__)


class PlanWriterService:
    """Generates lesson plans with GPT-4o in JSON mode"""

    def __init__(self):
        self.model = config.plan_model
        self.section_count = config.section_count
        try:
            from openai import OpenAI
            if not config.openai_api_key:
                raise ValueError("OPENAI_API_KEY not set")
            self.client = OpenAI(api_key=config.openai_api_key)
            self.available = True
        except Exception as e:
            logger.error(f"Failed to initialize OpenAI client: {e}")
            self.client = None
            self.available = False

    def generate_plan(self, topic: str, grade: str, teacher_style: str, quiz_count: int) -> LessonPlan:
        """
        Generate a lesson plan for a topic.

        Returns:
            LessonPlan with exactly ``section_count`` sections and ``quiz_count`` quizzes

        Raises:
            PlanGenerationFailure: on API errors or malformed output
        """
        logger.info(f"Generating lesson plan for: {topic} ({grade}, {quiz_count} quizzes)")
        prompt = build_plan_prompt(topic, grade, teacher_style, quiz_count, self.section_count)
        payload = self._complete_json(LESSON_PLAN_SYSTEM_PROMPT, prompt, PlanGenerationFailure)
        return self.parse_plan(payload, quiz_count, topic=topic)

    def generate_plan_from_text(
        self,
        source_text: str,
        grade: str,
        teacher_style: str,
        quiz_count: int,
    ) -> LessonPlan:
        """Generate a lesson plan that teaches the given material."""
        text = source_text[:config.source_text_limit]
        if len(text) < len(source_text):
            logger.info(f"Source text truncated from {len(source_text)} to {len(text)} characters")
        logger.info(f"Generating lesson plan from {len(text)} characters of material")
        prompt = build_plan_from_text_prompt(text, grade, teacher_style, quiz_count, self.section_count)
        payload = self._complete_json(LESSON_PLAN_SYSTEM_PROMPT, prompt, PlanGenerationFailure)
        return self.parse_plan(payload, quiz_count)

    def generate_teacher(self, keyword: str) -> Teacher:
        """
        Invent a teacher persona from a keyword.

        Raises:
            TeacherGenerationFailure: on API errors or malformed output
        """
        logger.info(f"Generating teacher persona for keyword: {keyword}")
        payload = self._complete_json(
            TEACHER_SYSTEM_PROMPT, build_teacher_prompt(keyword), TeacherGenerationFailure
        )
        return self.parse_teacher(payload)

    def parse_plan(self, payload: Dict[str, Any], quiz_count: int, topic: str = '') -> LessonPlan:
        """
        Validate model output and trim it to the requested lesson shape.

        Surplus sections and quizzes are dropped; a shortfall is a failure.
        """
        if not isinstance(payload, dict):
            raise PlanGenerationFailure("Lesson plan must be a JSON object")

        sections = payload.get('sections') or []
        quizzes = payload.get('quizzes') or []
        if not isinstance(sections, list) or not isinstance(quizzes, list):
            raise PlanGenerationFailure("Lesson plan sections and quizzes must be lists")
        if len(sections) < self.section_count:
            raise PlanGenerationFailure(
                f"Expected {self.section_count} sections, got {len(sections)}"
            )
        if len(quizzes) < quiz_count:
            raise PlanGenerationFailure(f"Expected {quiz_count} quizzes, got {len(quizzes)}")
        if len(sections) > self.section_count or len(quizzes) > quiz_count:
            logger.warning(
                f"Trimming plan from {len(sections)} sections/{len(quizzes)} quizzes "
                f"to {self.section_count}/{quiz_count}"
            )

        trimmed = dict(payload)
        trimmed['sections'] = sections[:self.section_count]
        trimmed['quizzes'] = quizzes[:quiz_count]

        serializer = LessonPlanSerializer(data=trimmed)
        if not serializer.is_valid():
            logger.error(f"Lesson plan failed validation: {serializer.errors}")
            raise PlanGenerationFailure(f"Malformed lesson plan: {serializer.errors}")

        plan = lesson_plan_from_data(serializer.validated_data, topic=topic)
        if not plan.topic:
            plan = LessonPlan(
                topic=plan.sections[0].title,
                learning_goal=plan.learning_goal,
                sections=plan.sections,
                quizzes=plan.quizzes,
                activities=plan.activities,
            )
        logger.info(
            f"Lesson plan ready: {plan.topic} "
            f"({len(plan.sections)} sections, {len(plan.quizzes)} quizzes, {len(plan.activities)} activities)"
        )
        return plan

    def parse_teacher(self, payload: Dict[str, Any]) -> Teacher:
        if not isinstance(payload, dict):
            raise TeacherGenerationFailure("Teacher persona must be a JSON object")

        data = dict(payload)
        if 'avatar_emoji' in data and not data.get('avatar'):
            data['avatar'] = data.pop('avatar_emoji')
        if data.get('voice_name') not in TEACHER_VOICES:
            logger.warning(f"Unknown voice {data.get('voice_name')!r}, using {DEFAULT_TEACHER.voice_name}")
            data['voice_name'] = DEFAULT_TEACHER.voice_name
        if data.get('gender') not in ('male', 'female'):
            data.pop('gender', None)

        serializer = TeacherSerializer(data=data)
        if not serializer.is_valid():
            logger.error(f"Teacher persona failed validation: {serializer.errors}")
            raise TeacherGenerationFailure(f"Malformed teacher persona: {serializer.errors}")
        return teacher_from_data(serializer.validated_data)

    def _complete_json(self, system_prompt: str, user_prompt: str, failure: type) -> Dict[str, Any]:
        if not self.available:
            raise failure("OpenAI client not initialized")

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0.7,
            )
        except Exception as e:
            logger.error(f"OpenAI request failed: {e}")
            raise failure(f"Generation request failed: {e}") from e

        content: Optional[str] = response.choices[0].message.content if response.choices else None
        if not content:
            raise failure("Empty response from model")
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"Model returned invalid JSON: {e}")
            raise failure(f"Invalid JSON from model: {e}") from e


# Global singleton
_plan_writer: Optional[PlanWriterService] = None


def get_plan_writer() -> PlanWriterService:
    """Get or create the global plan writer"""
    global _plan_writer
    if _plan_writer is None:
        _plan_writer = PlanWriterService()
    return _plan_writer
