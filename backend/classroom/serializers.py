"""DRF serializers that define the classroom wire contracts."""
import uuid
from typing import Any, Dict

from rest_framework import serializers

from classroom.config import config
from classroom.types import (
    DEFAULT_GRADE,
    DEFAULT_TEACHER,
    GRADES,
    TEACHER_VOICES,
    ActivityItem,
    LessonPlan,
    QuizItem,
    Section,
    StudentInfo,
    Teacher,
    VisualKind,
)


# =============================================================================
# Lesson plan (model output)
# =============================================================================

class SectionSerializer(serializers.Serializer):
    """One narrated teaching step."""
    section_title = serializers.CharField()
    text = serializers.CharField()
    visual_prompts = serializers.ListField(
        child=serializers.CharField(allow_blank=True),
        required=False,
        default=list,
    )
    visual_type = serializers.ChoiceField(
        choices=[kind.value for kind in VisualKind],
        required=False,
        default=VisualKind.IMAGE.value,
    )


class QuizItemSerializer(serializers.Serializer):
    """Multiple-choice question; ``answer`` is a 0-based option index."""
    question = serializers.CharField()
    options = serializers.ListField(child=serializers.CharField(), min_length=2)
    answer = serializers.IntegerField(min_value=0)

    def validate(self, attrs):
        if attrs['answer'] >= len(attrs['options']):
            raise serializers.ValidationError(
                {'answer': f"must be below the option count ({len(attrs['options'])})"}
            )
        return attrs


class ActivitySerializer(serializers.Serializer):
    title = serializers.CharField()
    description = serializers.CharField(required=False, allow_blank=True, default='')
    materials = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    steps = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    example_result_desc = serializers.CharField(required=False, allow_blank=True, default='')


class LessonPlanSerializer(serializers.Serializer):
    """Lesson plan as returned by the plan model."""
    topic = serializers.CharField(required=False, allow_blank=True, default='')
    learning_goal = serializers.CharField(required=False, allow_blank=True, default='')
    sections = SectionSerializer(many=True, allow_empty=False)
    quizzes = QuizItemSerializer(many=True, allow_empty=False)
    activities = ActivitySerializer(many=True, required=False, default=list)


def lesson_plan_from_data(data: Dict[str, Any], topic: str = '') -> LessonPlan:
    """Build a LessonPlan from LessonPlanSerializer.validated_data."""
    sections = tuple(
        Section(
            title=s['section_title'],
            narration_text=s['text'],
            visual_prompts=tuple(p for p in s['visual_prompts'] if p.strip()),
            visual_kind=VisualKind(s['visual_type']),
        )
        for s in data['sections']
    )
    quizzes = tuple(
        QuizItem(
            question=q['question'],
            options=tuple(q['options']),
            correct_index=q['answer'],
        )
        for q in data['quizzes']
    )
    activities = tuple(
        ActivityItem(
            title=a['title'],
            description=a['description'],
            materials=tuple(a['materials']),
            steps=tuple(a['steps']),
            example_result_desc=a['example_result_desc'],
        )
        for a in data.get('activities', [])
    )
    return LessonPlan(
        topic=data.get('topic') or topic,
        learning_goal=data.get('learning_goal', ''),
        sections=sections,
        quizzes=quizzes,
        activities=activities,
    )


# =============================================================================
# Teacher persona
# =============================================================================

class TeacherSerializer(serializers.Serializer):
    """Teacher persona, either generated or supplied by the client on join."""
    id = serializers.CharField(required=False, allow_blank=True)
    name = serializers.CharField(max_length=80)
    avatar = serializers.CharField(required=False, allow_blank=True, default=DEFAULT_TEACHER.avatar)
    style = serializers.CharField()
    voice_name = serializers.ChoiceField(choices=TEACHER_VOICES, required=False, default=DEFAULT_TEACHER.voice_name)
    gender = serializers.ChoiceField(choices=['male', 'female'], required=False, default='female')
    color = serializers.CharField(required=False, allow_blank=True, default=DEFAULT_TEACHER.color)
    greeting = serializers.CharField(required=False, allow_blank=True, default='')
    visual_desc = serializers.CharField(required=False, allow_blank=True, default='')
    background_prompt = serializers.CharField(required=False, allow_blank=True, default='')
    custom_image_url = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)


def teacher_from_data(data: Dict[str, Any]) -> Teacher:
    """Build a Teacher from TeacherSerializer.validated_data."""
    return Teacher(
        id=data.get('id') or f"custom-{uuid.uuid4().hex[:8]}",
        name=data['name'],
        avatar=data['avatar'] or DEFAULT_TEACHER.avatar,
        style=data['style'],
        voice_name=data['voice_name'],
        gender=data['gender'],
        color=data['color'] or DEFAULT_TEACHER.color,
        greeting=data['greeting'],
        visual_desc=data['visual_desc'],
        background_prompt=data['background_prompt'],
        custom_image_url=data.get('custom_image_url') or None,
    )


class GenerateTeacherSerializer(serializers.Serializer):
    keyword = serializers.CharField(max_length=200)


# =============================================================================
# Client actions
# =============================================================================

class StudentInfoSerializer(serializers.Serializer):
    school_name = serializers.CharField(required=False, allow_blank=True, default='')
    grade_class = serializers.CharField(required=False, allow_blank=True, default='')
    student_name = serializers.CharField(required=False, allow_blank=True, default='')


def student_info_from_data(data: Dict[str, Any]) -> StudentInfo:
    return StudentInfo(
        school_name=data['school_name'],
        grade_class=data['grade_class'],
        student_name=data['student_name'],
    )


class StartLessonSerializer(serializers.Serializer):
    """Topic, pasted text or base64 file contents, plus lesson shape."""
    topic = serializers.CharField(required=False, allow_blank=True, default='')
    file_text = serializers.CharField(required=False, allow_blank=True, default='', trim_whitespace=False)
    file_data = serializers.CharField(required=False, allow_blank=True, default='')
    grade = serializers.ChoiceField(choices=GRADES, required=False, default=DEFAULT_GRADE)
    quiz_count = serializers.IntegerField(
        min_value=1,
        max_value=config.max_quiz_count,
        required=False,
        default=config.default_quiz_count,
    )

    def validate(self, attrs):
        if not (attrs['topic'].strip() or attrs['file_text'].strip() or attrs['file_data']):
            raise serializers.ValidationError("Provide a topic or a lesson file.")
        return attrs


class IndexSerializer(serializers.Serializer):
    index = serializers.IntegerField(min_value=0)


class ClipSerializer(serializers.Serializer):
    clip = serializers.IntegerField(min_value=1)
