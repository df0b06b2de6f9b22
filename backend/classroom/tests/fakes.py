"""
In-memory collaborators for classroom tests.

Nothing here touches the network. Slow calls can be held open with
``hold(...)`` to force a particular completion order.
"""
import asyncio
from typing import Dict, List, Optional, Tuple

from classroom.errors import ImageGenerationFailure, PlanGenerationFailure, VideoGenerationFailure
from classroom.pipelines.narration import AudioSink
from classroom.services.speech import SpeechSource
from classroom.types import (
    AudioBuffer,
    LessonPlan,
    QuizItem,
    Section,
    Teacher,
    VisualKind,
    DEFAULT_TEACHER,
)


def make_plan(section_count: int = 10, quiz_count: int = 3, topic: str = "Volcanoes") -> LessonPlan:
    """Even sections ask for one illustration, section 0 asks for two."""
    sections = []
    for i in range(section_count):
        if i == 0:
            prompts = ("a smiling volcano", "lava flowing into the sea")
        elif i % 2 == 0:
            prompts = (f"illustration {i}",)
        else:
            prompts = ()
        sections.append(Section(
            title=f"Part {i + 1}",
            narration_text=f"Narration for part {i + 1}.",
            visual_prompts=prompts,
            visual_kind=VisualKind.IMAGE if prompts else VisualKind.NONE,
        ))
    quizzes = tuple(
        QuizItem(
            question=f"Question about volcanoes {i + 1}?",
            options=("magma", "ice", "sand", "wind"),
            correct_index=i % 4,
        )
        for i in range(quiz_count)
    )
    return LessonPlan(
        topic=topic,
        learning_goal="Explain how a volcano erupts.",
        sections=tuple(sections),
        quizzes=quizzes,
    )


class _Gates:
    def __init__(self):
        self._gates: Dict[str, asyncio.Event] = {}

    def hold(self, key: str) -> asyncio.Event:
        """Block calls whose text contains ``key`` until the event is set."""
        event = asyncio.Event()
        self._gates[key] = event
        return event

    async def wait(self, text: str) -> None:
        for key, event in list(self._gates.items()):
            if key in text:
                await event.wait()


class FakeSpeechSource(SpeechSource):
    """Returns the UTF-8 text as the audio payload."""

    def __init__(self):
        self.calls: List[str] = []
        self.completed: List[str] = []
        self.errors: Dict[str, Exception] = {}
        self.gates = _Gates()
        self.available = True

    def hold(self, text: str) -> asyncio.Event:
        return self.gates.hold(text)

    async def generate_speech(self, text: str, voice: str) -> AudioBuffer:
        self.calls.append(text)
        await self.gates.wait(text)
        if text in self.errors:
            raise self.errors[text]
        self.completed.append(text)
        return AudioBuffer(data=text.encode('utf-8'))


class RecordingSink(AudioSink):
    """Remembers which clips were made audible and which were stopped."""

    def __init__(self):
        self.played: List[Tuple[int, str]] = []
        self.stopped: List[int] = []

    @property
    def played_texts(self) -> List[str]:
        return [text for _, text in self.played]

    async def play(self, clip_id: int, buffer: AudioBuffer) -> None:
        self.played.append((clip_id, buffer.data.decode('utf-8')))

    async def stop(self, clip_id: int) -> None:
        self.stopped.append(clip_id)


class YieldingSink(RecordingSink):
    """Sink whose stop suspends, like one that writes to a socket."""

    async def stop(self, clip_id: int) -> None:
        await asyncio.sleep(0)
        await super().stop(clip_id)


class FakeContentSource:
    """Plan, image and video source with scripted results.

    Images are the UTF-8 bytes of their prompt, so tests can tell which
    request produced a displayed image.
    """

    def __init__(self, plan: Optional[LessonPlan] = None):
        self.plan = plan or make_plan()
        self.plan_error: Optional[Exception] = None
        self.plan_calls: List[tuple] = []
        self.image_prompts: List[str] = []
        self.failing_prompts: List[str] = []
        self.gates = _Gates()
        self.video_url = "https://video.example/summary.mp4"
        self.video_error: Optional[Exception] = None
        self.video_gate: Optional[asyncio.Event] = None
        self.teacher = DEFAULT_TEACHER
        self.available = {'plans': True, 'media': True}

    def hold(self, prompt_fragment: str) -> asyncio.Event:
        return self.gates.hold(prompt_fragment)

    async def generate_plan(self, topic, grade, teacher_style, quiz_count):
        self.plan_calls.append(('topic', topic, grade, quiz_count))
        await self.gates.wait(f"plan:{topic}")
        if self.plan_error is not None:
            raise self.plan_error
        return self.plan

    async def generate_plan_from_text(self, source_text, grade, teacher_style, quiz_count):
        self.plan_calls.append(('text', source_text, grade, quiz_count))
        if self.plan_error is not None:
            raise self.plan_error
        return self.plan

    async def generate_teacher(self, keyword) -> Teacher:
        return self.teacher

    async def generate_image(self, prompt: str) -> bytes:
        self.image_prompts.append(prompt)
        await self.gates.wait(prompt)
        if any(fragment in prompt for fragment in self.failing_prompts):
            raise ImageGenerationFailure(f"No image generated for {prompt}")
        return prompt.encode('utf-8')

    async def generate_image_once(self, prompt: str) -> bytes:
        return await self.generate_image(prompt)

    async def download_image(self, url: str) -> bytes:
        return f"download:{url}".encode('utf-8')

    async def generate_video_summary(self, topic: str) -> str:
        if self.video_gate is not None:
            await self.video_gate.wait()
        if self.video_error is not None:
            raise self.video_error
        return self.video_url


PLAN_FAILURE = PlanGenerationFailure("model returned nothing")
VIDEO_FAILURE = VideoGenerationFailure("job failed")
