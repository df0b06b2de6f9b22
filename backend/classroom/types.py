"""
Shared types for the classroom session engine.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union


TEACHER_VOICES = ("Puck", "Charon", "Kore", "Fenrir", "Zephyr")
GRADES = tuple(f"Grade {n}" for n in range(1, 7))
DEFAULT_GRADE = "Grade 3"


class VisualKind(str, Enum):
    """Whether a section asks for illustrations."""
    NONE = "none"
    IMAGE = "image"


@dataclass(frozen=True)
class Section:
    """One teaching step of a lesson plan"""
    title: str
    narration_text: str
    visual_prompts: Tuple[str, ...] = ()
    visual_kind: VisualKind = VisualKind.NONE


@dataclass(frozen=True)
class QuizItem:
    """Multiple-choice question with a guaranteed-valid answer index"""
    question: str
    options: Tuple[str, ...]
    correct_index: int

    def __post_init__(self):
        if len(self.options) < 2:
            raise ValueError("A quiz item needs at least two options")
        if not 0 <= self.correct_index < len(self.options):
            raise ValueError(
                f"correct_index {self.correct_index} outside 0..{len(self.options) - 1}"
            )


@dataclass(frozen=True)
class ActivityItem:
    """Creative follow-up activity suggested with the plan"""
    title: str
    description: str
    materials: Tuple[str, ...] = ()
    steps: Tuple[str, ...] = ()
    example_result_desc: str = ""


@dataclass(frozen=True)
class LessonPlan:
    """Generated lesson; replaced wholesale when a new lesson starts"""
    topic: str
    learning_goal: str
    sections: Tuple[Section, ...]
    quizzes: Tuple[QuizItem, ...]
    activities: Tuple[ActivityItem, ...] = ()


@dataclass(frozen=True)
class Teacher:
    """Teacher persona driving plan style, voice and artwork"""
    id: str
    name: str
    avatar: str  # emoji shown when no avatar image is available
    style: str
    voice_name: str
    gender: str = "female"
    color: str = "bg-indigo-500"
    greeting: str = ""
    visual_desc: str = ""
    background_prompt: str = ""
    custom_image_url: Optional[str] = None


DEFAULT_TEACHER = Teacher(
    id="hoot",
    name="Professor Hoot",
    avatar="\U0001F989",
    style="Warm and curious; explains with everyday examples and playful questions",
    voice_name="Kore",
    gender="female",
    color="bg-indigo-500",
    greeting="Hello, friends! I'm Professor Hoot. Are you ready to learn something amazing?",
    visual_desc=(
        "a friendly cartoon owl teacher wearing round glasses and a small bow tie, "
        "full body character, vector illustration, white background"
    ),
    background_prompt="cozy treehouse classroom with bookshelves and warm lamps",
)


@dataclass(frozen=True)
class AudioBuffer:
    """Playable narration clip"""
    data: bytes
    mime_type: str = "audio/pcm;rate=24000"
    sample_rate: int = 24000
    channels: int = 1

    @property
    def duration_seconds(self) -> Optional[float]:
        """Duration for raw 16-bit PCM; None for compressed formats."""
        if not self.mime_type.startswith("audio/pcm"):
            return None
        frame_bytes = 2 * self.channels
        return round(len(self.data) / (frame_bytes * self.sample_rate), 3)


# =============================================================================
# Session states
# =============================================================================

@dataclass(frozen=True)
class Idle:
    phase: ClassVar[str] = "idle"


@dataclass(frozen=True)
class Planning:
    phase: ClassVar[str] = "planning"


@dataclass(frozen=True)
class Teaching:
    overview: bool = True
    section_index: int = 0
    phase: ClassVar[str] = "teaching"


@dataclass(frozen=True)
class Quiz:
    quiz_index: int = 0
    score: int = 0
    finished: bool = False
    selected: Optional[int] = None
    phase: ClassVar[str] = "quiz"


SessionState = Union[Idle, Planning, Teaching, Quiz]


# Helper functions for type conversions
def section_to_dict(section: Section) -> Dict[str, Any]:
    """Convert Section to dict for serialization"""
    return {
        'title': section.title,
        'narration_text': section.narration_text,
        'visual_prompts': list(section.visual_prompts),
        'visual_kind': section.visual_kind.value,
    }


def quiz_item_to_dict(item: QuizItem) -> Dict[str, Any]:
    """Convert QuizItem to dict for serialization"""
    return {
        'question': item.question,
        'options': list(item.options),
        'correct_index': item.correct_index,
    }


def activity_to_dict(activity: ActivityItem) -> Dict[str, Any]:
    """Convert ActivityItem to dict for serialization"""
    return {
        'title': activity.title,
        'description': activity.description,
        'materials': list(activity.materials),
        'steps': list(activity.steps),
        'example_result_desc': activity.example_result_desc,
    }


def lesson_plan_to_dict(plan: LessonPlan) -> Dict[str, Any]:
    """Convert LessonPlan to dict for serialization"""
    return {
        'topic': plan.topic,
        'learning_goal': plan.learning_goal,
        'sections': [section_to_dict(s) for s in plan.sections],
        'quizzes': [quiz_item_to_dict(q) for q in plan.quizzes],
        'activities': [activity_to_dict(a) for a in plan.activities],
    }


def teacher_to_dict(teacher: Teacher) -> Dict[str, Any]:
    """Convert Teacher to dict for serialization"""
    return {
        'id': teacher.id,
        'name': teacher.name,
        'avatar': teacher.avatar,
        'style': teacher.style,
        'voice_name': teacher.voice_name,
        'gender': teacher.gender,
        'color': teacher.color,
        'greeting': teacher.greeting,
        'visual_desc': teacher.visual_desc,
        'background_prompt': teacher.background_prompt,
        'custom_image_url': teacher.custom_image_url,
    }


def session_state_to_dict(state: SessionState) -> Dict[str, Any]:
    """Convert the active SessionState variant to a tagged dict"""
    data: Dict[str, Any] = {'phase': state.phase}
    if isinstance(state, Teaching):
        data['overview'] = state.overview
        data['section_index'] = state.section_index
    elif isinstance(state, Quiz):
        data['quiz_index'] = state.quiz_index
        data['score'] = state.score
        data['finished'] = state.finished
        data['selected'] = state.selected
    return data


def section_images_to_dict(images: Dict[int, List[str]]) -> Dict[str, List[str]]:
    """JSON object keys must be strings."""
    return {str(index): list(urls) for index, urls in sorted(images.items())}


@dataclass
class StudentInfo:
    """Host-persisted learner details; displayed only, never read by the engine"""
    school_name: str = ""
    grade_class: str = ""
    student_name: str = ""


def student_info_to_dict(info: StudentInfo) -> Dict[str, Any]:
    """Convert StudentInfo to dict for serialization"""
    return {
        'school_name': info.school_name,
        'grade_class': info.grade_class,
        'student_name': info.student_name,
    }
