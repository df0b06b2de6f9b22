import json
import asyncio
import logging
from typing import Optional

from channels.generic.websocket import AsyncWebsocketConsumer

from classroom.errors import ClassroomError
from classroom.pipelines.narration import AudioSink, NarrationEngine
from classroom.pipelines.session import SessionController
from classroom.serializers import (
    ClipSerializer,
    IndexSerializer,
    StartLessonSerializer,
    StudentInfoSerializer,
    TeacherSerializer,
    student_info_from_data,
    teacher_from_data,
)
from classroom.services.content_source import get_content_source
from classroom.services.speech import get_speech_source
from classroom.types import DEFAULT_TEACHER, AudioBuffer

logger = logging.getLogger(__name__)


class WebsocketAudioSink(AudioSink):
    """Streams each narration clip to the browser as one binary frame."""

    def __init__(self, consumer: "ClassroomConsumer"):
        self.consumer = consumer

    async def play(self, clip_id: int, buffer: AudioBuffer) -> None:
        await self.consumer._send_json({
            'event': 'narration_started',
            'clip': clip_id,
            'mime_type': buffer.mime_type,
            'sample_rate': buffer.sample_rate,
            'duration': buffer.duration_seconds,
        })
        await self.consumer.send(bytes_data=buffer.data)

    async def stop(self, clip_id: int) -> None:
        await self.consumer._send_json({'event': 'narration_stopped', 'clip': clip_id})


class ClassroomConsumer(AsyncWebsocketConsumer):
    """One websocket connection drives one classroom session.

    Client protocol (JSON, field ``type``):
      - join {teacher?, student?}         create the session and prepare the classroom
      - start_lesson {topic | file_text | file_data, grade, quiz_count}
      - begin_lesson, next, prev, next_question, restart, replay, toggle_aggregate
      - answer {index}, select_section {index}
      - generate_video                    summary video once the quiz is finished
      - narration_ended {clip}            browser finished playing a clip

    Server sends (JSON, field ``event``):
      - connected, state (full snapshot), error {detail}
      - narration_started {clip, mime_type, sample_rate} followed by one binary
        audio frame, narration_stopped {clip}
    """

    async def connect(self):
        await self.accept()
        self.controller: Optional[SessionController] = None
        self._tasks = set()
        self._state_dirty = False
        self._flush_task = None
        content_source = get_content_source()
        await self._send_json({
            'event': 'connected',
            'services': {
                **content_source.available,
                'speech': get_speech_source().available,
            },
        })

    async def disconnect(self, code):
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
        if self.controller is not None:
            await self.controller.close()
            self.controller = None
        logger.info(f"Classroom socket closed ({code})")

    async def receive(self, text_data=None, bytes_data=None):
        if text_data is None:
            return
        try:
            msg = json.loads(text_data)
        except json.JSONDecodeError:
            await self._send_error("Invalid JSON")
            return
        if not isinstance(msg, dict):
            await self._send_error("Message must be a JSON object")
            return

        t = msg.get('type')
        handler = self._handlers().get(t)
        if handler is None:
            await self._send_error(f"Unknown message type: {t}")
            return
        if t != 'join' and self.controller is None:
            await self._send_error("Join the classroom first")
            return

        try:
            await handler(msg)
        except ClassroomError as e:
            logger.warning(f"{t} failed: {e}")
            await self._send_error(str(e))
        except Exception as e:
            logger.exception(f"Unhandled error while handling {t}")
            await self._send_error(f"{t} failed: {e}")

    def _handlers(self):
        return {
            'join': self._on_join,
            'start_lesson': self._on_start_lesson,
            'begin_lesson': lambda msg: self.controller.begin_lesson(),
            'next': lambda msg: self.controller.next(),
            'prev': lambda msg: self.controller.prev(),
            'answer': self._on_answer,
            'next_question': lambda msg: self.controller.next_question(),
            'restart': lambda msg: self.controller.restart(),
            'replay': lambda msg: self.controller.replay_current_narration(),
            'toggle_aggregate': lambda msg: self.controller.toggle_aggregate_view(),
            'select_section': self._on_select_section,
            'generate_video': self._on_generate_video,
            'narration_ended': self._on_narration_ended,
        }

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _on_join(self, msg):
        teacher = DEFAULT_TEACHER
        if msg.get('teacher'):
            serializer = TeacherSerializer(data=msg['teacher'])
            if not serializer.is_valid():
                await self._send_error(serializer.errors)
                return
            teacher = teacher_from_data(serializer.validated_data)

        if self.controller is None:
            narration = NarrationEngine(get_speech_source(), WebsocketAudioSink(self), voice=teacher.voice_name)
            self.controller = SessionController(get_content_source(), narration, teacher=teacher)
            self.controller.add_listener(self._mark_dirty)

        if msg.get('student'):
            serializer = StudentInfoSerializer(data=msg['student'])
            if serializer.is_valid():
                self.controller.set_student(student_info_from_data(serializer.validated_data))
            else:
                logger.warning(f"Ignoring invalid student info: {serializer.errors}")

        logger.info(f"Classroom joined with teacher {teacher.name}")
        self._spawn(self.controller.prepare_classroom(teacher))
        self._mark_dirty()

    async def _on_start_lesson(self, msg):
        serializer = StartLessonSerializer(data=msg)
        if not serializer.is_valid():
            await self._send_error(serializer.errors)
            return
        data = serializer.validated_data
        self._spawn(self.controller.start_lesson(
            topic=data['topic'],
            grade=data['grade'],
            quiz_count=data['quiz_count'],
            source_text=data['file_text'] or None,
            file_data=data['file_data'] or None,
        ))

    async def _on_answer(self, msg):
        index = await self._index(msg)
        if index is not None:
            await self.controller.answer(index)

    async def _on_select_section(self, msg):
        index = await self._index(msg)
        if index is not None:
            await self.controller.select_section(index)

    async def _on_generate_video(self, msg):
        if not self.controller.generate_summary_video():
            await self._send_error("A video summary is available once the quiz is finished")

    async def _on_narration_ended(self, msg):
        serializer = ClipSerializer(data=msg)
        if not serializer.is_valid():
            await self._send_error(serializer.errors)
            return
        if self.controller.narration.playback_finished(serializer.validated_data['clip']):
            self._mark_dirty()

    async def _index(self, msg) -> Optional[int]:
        serializer = IndexSerializer(data=msg)
        if not serializer.is_valid():
            await self._send_error(serializer.errors)
            return None
        return serializer.validated_data['index']

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _mark_dirty(self):
        """Coalesce bursts of changes into one state event."""
        self._state_dirty = True
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = self._spawn(self._flush_state())

    async def _flush_state(self):
        while self._state_dirty and self.controller is not None:
            self._state_dirty = False
            snapshot = self.controller.snapshot()
            self.controller.take_notice()
            await self._send_json({'event': 'state', **snapshot})

    async def _send_error(self, detail):
        await self._send_json({'event': 'error', 'detail': detail})

    async def _send_json(self, payload: dict):
        await self.send(text_data=json.dumps(payload))
