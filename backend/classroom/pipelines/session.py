"""
Session controller - one learner's lesson, quiz and classroom artwork.

The controller owns the SessionState and applies learner actions through the
transition table in ``state_machine``. Slow side effects (narration,
illustrations, video) run as background tasks; their results are applied
only while the lesson and view they were requested for are still current.

Usage:
    controller = SessionController(get_content_source(), NarrationEngine(get_speech_source()))
    await controller.start_lesson(topic="Volcanoes", grade="Grade 3", quiz_count=3)
    await controller.begin_lesson()
    await controller.next()
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from classroom.config import config
from classroom.errors import (
    ImageGenerationFailure,
    PlanGenerationFailure,
    SourceFileReadFailure,
    VideoGenerationFailure,
)
from classroom.pipelines.narration import NarrationEngine
from classroom.pipelines.state_machine import (
    Answer,
    BeginLesson,
    Next,
    NextQuestion,
    PlanFailed,
    PlanReady,
    Prev,
    Restart,
    SelectSection,
    SessionEvent,
    StartLesson,
    transition,
)
from classroom.prompts import (
    avatar_prompt,
    board_sketch_prompt,
    classroom_background_prompt,
    illustration_prompt,
    topic_board_prompt,
)
from classroom.services.alpha_matte import AlphaMatteProcessor, get_alpha_matte_processor
from classroom.services.content_source import ContentSource, decode_source_file
from classroom.types import (
    DEFAULT_GRADE,
    DEFAULT_TEACHER,
    Idle,
    LessonPlan,
    Quiz,
    SessionState,
    StudentInfo,
    Teacher,
    Teaching,
    VisualKind,
    lesson_plan_to_dict,
    section_images_to_dict,
    session_state_to_dict,
    student_info_to_dict,
    teacher_to_dict,
)
from classroom.utils.data_urls import from_data_url, to_data_url
from classroom.utils.epoch import EpochGuard
from classroom.utils.narration_text import lesson_intro, quiz_finished, quiz_narration

logger = logging.getLogger(__name__)

PLAN_FAILED_MESSAGE = "Could not create the lesson. Please try again."
VIDEO_FAILED_MESSAGE = "Video generation failed."


class SessionController:
    """State machine plus side effects for a single classroom session"""

    def __init__(
        self,
        content_source: ContentSource,
        narration: NarrationEngine,
        teacher: Teacher = DEFAULT_TEACHER,
        matte: Optional[AlphaMatteProcessor] = None,
        language: Optional[str] = None,
    ):
        self.content_source = content_source
        self.narration = narration
        self.matte = matte or get_alpha_matte_processor()
        self.language = language or config.narration_language
        self.teacher = teacher
        self.narration.voice = teacher.voice_name
        self.student = StudentInfo()

        self.state: SessionState = Idle()
        self.plan: Optional[LessonPlan] = None
        self.topic = ""
        self.grade = DEFAULT_GRADE

        self.avatar_image: Optional[str] = None
        self.background_image: Optional[str] = None
        self.board_image: Optional[str] = None
        self.section_images: Dict[int, List[str]] = {}
        self._illustrated: Set[int] = set()
        self.is_generating_images = False

        self.video_url: Optional[str] = None
        self.video_error: Optional[str] = None
        self.is_generating_video = False

        self.aggregate_view = False
        self.last_answer_correct: Optional[bool] = None
        self.notice: Optional[str] = None

        # lesson: plan/start attempts; view: the displayed section or question
        self._lesson = EpochGuard()
        self._view = EpochGuard()
        self._setup = EpochGuard()

        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[Callable[[], Any]] = []
        self._closed = False

    # =========================================================================
    # Observers
    # =========================================================================

    def add_listener(self, callback: Callable[[], Any]) -> None:
        """Register a callback invoked after every observable change."""
        self._listeners.append(callback)

    def _notify(self) -> None:
        if self._closed:
            return
        for callback in list(self._listeners):
            try:
                callback()
            except Exception as e:
                logger.error(f"Session listener failed: {e}")

    def _spawn(self, coro: Awaitable, label: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                return
            error = t.exception()
            if error is not None:
                logger.error(f"Background task {label} failed: {error}")
            self._notify()

        task.add_done_callback(_done)
        return task

    async def join_background_tasks(self) -> None:
        """Wait until every background task, including ones they spawn, settles."""
        while self._tasks or self.narration.has_background_work:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await self.narration.drain()

    # =========================================================================
    # Classroom setup
    # =========================================================================

    async def prepare_classroom(self, teacher: Optional[Teacher] = None) -> None:
        """
        Greet the learner and generate the avatar and background.

        Both images are best effort and bounded by the setup timeout; the UI
        falls back to the teacher's emoji when the avatar is missing.
        """
        if teacher is not None:
            self.teacher = teacher
            self.narration.voice = teacher.voice_name
        setup_epoch = self._setup.advance()
        self.avatar_image = None
        self.background_image = None
        self._notify()

        if self.teacher.greeting and isinstance(self.state, Idle):
            self._spawn(self.narration.play(self.teacher.greeting), "greeting")

        await asyncio.gather(
            self._load_avatar(setup_epoch),
            self._load_background(setup_epoch),
        )
        self._notify()

    async def _load_avatar(self, setup_epoch: int) -> None:
        teacher = self.teacher
        try:
            if teacher.custom_image_url:
                if teacher.custom_image_url.startswith('data:'):
                    raw, _ = from_data_url(teacher.custom_image_url)
                else:
                    raw = await asyncio.wait_for(
                        self.content_source.download_image(teacher.custom_image_url),
                        timeout=config.setup_image_timeout,
                    )
            else:
                raw = await asyncio.wait_for(
                    self.content_source.generate_image_once(avatar_prompt(teacher.visual_desc)),
                    timeout=config.setup_image_timeout,
                )
        except asyncio.TimeoutError:
            logger.warning("Avatar generation timed out, falling back to emoji")
            return
        except (ImageGenerationFailure, ValueError) as e:
            logger.warning(f"Avatar generation failed, falling back to emoji: {e}")
            return

        processed = await asyncio.to_thread(self.matte.process_bytes, raw)
        if self._setup.is_current(setup_epoch):
            self.avatar_image = to_data_url(processed)

    async def _load_background(self, setup_epoch: int) -> None:
        prompt = classroom_background_prompt(self.teacher.background_prompt)
        try:
            raw = await asyncio.wait_for(
                self.content_source.generate_image_once(prompt),
                timeout=config.setup_image_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Background generation timed out")
            return
        except ImageGenerationFailure as e:
            logger.warning(f"Background generation failed: {e}")
            return
        if self._setup.is_current(setup_epoch):
            self.background_image = to_data_url(raw)

    def set_student(self, student: StudentInfo) -> None:
        self.student = student
        self._notify()

    # =========================================================================
    # Lesson lifecycle
    # =========================================================================

    async def start_lesson(
        self,
        topic: str = "",
        grade: str = DEFAULT_GRADE,
        quiz_count: Optional[int] = None,
        source_text: Optional[str] = None,
        file_data: Optional[str] = None,
    ) -> bool:
        """
        Request a lesson plan and enter the overview.

        Exactly one of ``topic``, ``source_text`` or ``file_data`` (base64)
        drives the plan. Failures revert to Idle with a one-shot notice.

        Returns:
            True once the plan is ready and the overview is showing
        """
        if transition(self.state, StartLesson()) == self.state:
            logger.warning(f"start_lesson ignored in phase {self.state.phase}")
            return False

        quiz_count = quiz_count or config.default_quiz_count
        if file_data:
            try:
                source_text = decode_source_file(file_data)
            except SourceFileReadFailure as e:
                logger.warning(f"Lesson file rejected: {e}")
                self.notice = str(e)
                self._notify()
                return False

        # Enter Planning before the first await so no other action can interleave
        lesson_epoch = self._lesson.advance()
        self._view.advance()
        self.narration.reset()
        self._clear_lesson()
        self.grade = grade
        self.topic = topic.strip() if topic else ""
        self.state = transition(self.state, StartLesson())
        self._notify()
        await self.narration.stop()

        try:
            if source_text and source_text.strip():
                plan = await self.content_source.generate_plan_from_text(
                    source_text, grade, self.teacher.style, quiz_count
                )
            else:
                plan = await self.content_source.generate_plan(
                    self.topic, grade, self.teacher.style, quiz_count
                )
        except PlanGenerationFailure as e:
            if not self._lesson.is_current(lesson_epoch):
                return False
            logger.error(f"Lesson planning failed: {e}")
            self.state = transition(self.state, PlanFailed())
            self.notice = PLAN_FAILED_MESSAGE
            self._notify()
            return False

        if not self._lesson.is_current(lesson_epoch):
            logger.debug("Discarding plan for a superseded lesson")
            return False

        self.plan = plan
        self.topic = plan.topic
        self._apply(PlanReady(plan))
        self._enter_overview()
        self._notify()
        return True

    def _clear_lesson(self) -> None:
        self.plan = None
        self.topic = ""
        self.board_image = None
        self.section_images = {}
        self._illustrated = set()
        self.is_generating_images = False
        self.video_url = None
        self.video_error = None
        self.is_generating_video = False
        self.aggregate_view = False
        self.last_answer_correct = None
        self.notice = None

    def _apply(self, event: SessionEvent) -> bool:
        new_state = transition(self.state, event, self.plan)
        if new_state == self.state:
            return False
        self.state = new_state
        return True

    async def begin_lesson(self) -> bool:
        if not self._apply(BeginLesson()):
            return False
        self._enter_section(0)
        self._notify()
        return True

    async def next(self) -> bool:
        previous = self.state
        if transition(previous, Next(), self.plan) == previous:
            return False
        await self.narration.stop()
        if not self._apply(Next()):
            return False
        if isinstance(self.state, Quiz):
            self.aggregate_view = False
            self._enter_question(0)
        else:
            self._enter_section(self.state.section_index)
        self._notify()
        return True

    async def prev(self) -> bool:
        if transition(self.state, Prev(), self.plan) == self.state:
            return False
        await self.narration.stop()
        if not self._apply(Prev()):
            return False
        self._enter_section(self.state.section_index)
        self._notify()
        return True

    async def answer(self, index: int) -> bool:
        """Record an answer for the current question; only the first counts."""
        before = self.state
        if not self._apply(Answer(index)):
            return False
        self.last_answer_correct = self.state.score > before.score
        logger.info(
            f"Question {self.state.quiz_index + 1}: option {index} "
            f"{'correct' if self.last_answer_correct else 'incorrect'}, score {self.state.score}"
        )
        self._notify()
        return True

    async def next_question(self) -> bool:
        if transition(self.state, NextQuestion(), self.plan) == self.state:
            return False
        await self.narration.stop()
        if not self._apply(NextQuestion()):
            return False
        self.last_answer_correct = None
        if self.state.finished:
            self._view.advance()
            self._narrate(self._current_text())
        else:
            self._enter_question(self.state.quiz_index)
        self._notify()
        return True

    async def restart(self) -> bool:
        """Leave a finished quiz for topic entry."""
        if not self._apply(Restart()):
            return False
        self._lesson.advance()
        self._view.advance()
        self.narration.reset()
        self._clear_lesson()
        self._notify()
        await self.narration.stop()
        return True

    async def replay_current_narration(self) -> bool:
        text = self._current_text()
        if text is None and isinstance(self.state, Idle):
            text = self.teacher.greeting
        if not text:
            return False
        self._narrate(text)
        return True

    async def toggle_aggregate_view(self) -> bool:
        """Switch the all-sections view; only available while teaching."""
        if not isinstance(self.state, Teaching) or self.plan is None:
            return False
        await self.narration.stop()
        if not isinstance(self.state, Teaching):
            return False
        self.aggregate_view = not self.aggregate_view
        if self.aggregate_view:
            self._illustrate_all()
        self._notify()
        return True

    async def select_section(self, index: int) -> bool:
        """Open one section from the aggregate view."""
        if not self._apply(SelectSection(index)):
            return False
        self.aggregate_view = False
        self._enter_section(index)
        self._notify()
        return True

    # =========================================================================
    # Summary video
    # =========================================================================

    def generate_summary_video(self) -> bool:
        """Start a summary video job for a finished quiz. Fire-and-forget."""
        if not (isinstance(self.state, Quiz) and self.state.finished) or self.plan is None:
            return False
        if self.is_generating_video:
            return False
        self.is_generating_video = True
        self.video_error = None
        self._spawn(self._generate_video(self._lesson.current, self.plan.topic), "video summary")
        self._notify()
        return True

    async def _generate_video(self, lesson_epoch: int, topic: str) -> None:
        try:
            url = await self.content_source.generate_video_summary(topic)
        except VideoGenerationFailure as e:
            logger.error(f"Video summary failed: {e}")
            if self._lesson.is_current(lesson_epoch):
                self.video_error = VIDEO_FAILED_MESSAGE
                self.is_generating_video = False
            return
        if self._lesson.is_current(lesson_epoch):
            self.video_url = url
            self.is_generating_video = False
            logger.info("Video summary ready")

    # =========================================================================
    # Entering a view
    # =========================================================================

    def _enter_overview(self) -> None:
        view_epoch = self._view.advance()
        self._request_board(view_epoch, topic_board_prompt(self.plan.topic))
        self._narrate(self._current_text())
        self.narration.prefetch(self.plan.sections[0].narration_text)

    def _enter_section(self, index: int) -> None:
        view_epoch = self._view.advance()
        section = self.plan.sections[index]
        self._request_board(view_epoch, board_sketch_prompt(section.title))
        self._illustrate(index)
        if not self.aggregate_view:
            self._narrate(section.narration_text)
        if index + 1 < len(self.plan.sections):
            self.narration.prefetch(self.plan.sections[index + 1].narration_text)
        elif self.plan.quizzes:
            self.narration.prefetch(quiz_narration(0, self.plan.quizzes[0], self.language))

    def _enter_question(self, index: int) -> None:
        view_epoch = self._view.advance()
        quiz = self.plan.quizzes[index]
        self._request_board(view_epoch, board_sketch_prompt(quiz.question))
        self._narrate(quiz_narration(index, quiz, self.language))
        if index + 1 < len(self.plan.quizzes):
            self.narration.prefetch(
                quiz_narration(index + 1, self.plan.quizzes[index + 1], self.language)
            )

    def _narrate(self, text: Optional[str]) -> None:
        if text:
            self._spawn(self.narration.play(text), "narration")

    def _current_text(self) -> Optional[str]:
        """Utterance for whatever is on screen right now."""
        plan = self.plan
        state = self.state
        if plan is None:
            return None
        if isinstance(state, Teaching):
            if state.overview:
                return lesson_intro(self.teacher.greeting, plan.topic, self.language)
            return plan.sections[state.section_index].narration_text
        if isinstance(state, Quiz):
            if state.finished:
                return quiz_finished(state.score, len(plan.quizzes), self.language)
            return quiz_narration(state.quiz_index, plan.quizzes[state.quiz_index], self.language)
        return None

    # =========================================================================
    # Artwork
    # =========================================================================

    def _request_board(self, view_epoch: int, prompt: str) -> None:
        self._spawn(self._load_board(self._lesson.current, view_epoch, prompt), "board sketch")

    async def _load_board(self, lesson_epoch: int, view_epoch: int, prompt: str) -> None:
        try:
            raw = await self.content_source.generate_image(prompt)
        except ImageGenerationFailure as e:
            logger.warning(f"Board sketch failed: {e}")
            return
        if not (self._lesson.is_current(lesson_epoch) and self._view.is_current(view_epoch)):
            logger.debug("Discarding board sketch for a view that moved on")
            return
        self.board_image = to_data_url(raw)

    def _illustrate(self, index: int) -> None:
        section = self.plan.sections[index]
        if index in self._illustrated:
            return
        if section.visual_kind != VisualKind.IMAGE or not section.visual_prompts:
            return
        self._illustrated.add(index)
        self.is_generating_images = True
        self._spawn(
            self._load_illustrations(self._lesson.current, index, section.visual_prompts),
            f"illustrations for section {index}",
        )

    def _illustrate_all(self) -> None:
        for index in range(len(self.plan.sections)):
            self._illustrate(index)

    async def _load_illustrations(self, lesson_epoch: int, index: int, prompts) -> None:
        results = await asyncio.gather(
            *(self._load_illustration(prompt) for prompt in prompts)
        )
        if not self._lesson.is_current(lesson_epoch):
            logger.debug(f"Discarding illustrations for section {index} of a previous lesson")
            return
        self.section_images[index] = [url for url in results if url]
        self.is_generating_images = len(self.section_images) < len(self._illustrated)
        logger.info(f"Section {index}: {len(self.section_images[index])}/{len(prompts)} illustrations")

    async def _load_illustration(self, prompt: str) -> Optional[str]:
        try:
            raw = await self.content_source.generate_image(illustration_prompt(prompt))
        except ImageGenerationFailure as e:
            logger.warning(f"Illustration failed for prompt {prompt!r}: {e}")
            return None
        processed = await asyncio.to_thread(self.matte.process_bytes, raw)
        return to_data_url(processed)

    # =========================================================================
    # Snapshot / teardown
    # =========================================================================

    def take_notice(self) -> Optional[str]:
        """Pop the one-shot notice."""
        notice, self.notice = self.notice, None
        return notice

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe view of everything the UI renders."""
        return {
            'state': session_state_to_dict(self.state),
            'topic': self.topic,
            'grade': self.grade,
            'plan': lesson_plan_to_dict(self.plan) if self.plan else None,
            'teacher': teacher_to_dict(self.teacher),
            'student': student_info_to_dict(self.student),
            'avatar_image': self.avatar_image,
            'background_image': self.background_image,
            'board_image': self.board_image,
            'section_images': section_images_to_dict(self.section_images),
            'is_generating_images': self.is_generating_images,
            'aggregate_view': self.aggregate_view,
            'last_answer_correct': self.last_answer_correct,
            'narration': {
                'is_playing': self.narration.is_playing,
                'error': self.narration.last_error,
                'error_kind': self.narration.last_error_kind,
            },
            'video': {
                'url': self.video_url,
                'error': self.video_error,
                'is_generating': self.is_generating_video,
            },
            'notice': self.notice,
        }

    async def close(self) -> None:
        """Cancel background work, silence narration and drop caches."""
        self._closed = True
        self._lesson.advance()
        self._view.advance()
        self._setup.advance()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
        await self.narration.close()
        self._listeners.clear()
        logger.info("Session closed")
