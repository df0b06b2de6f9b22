"""
Lesson/quiz transition table.

``transition`` is a total function of (state, event, plan): an event that is
not enabled in the current state returns the state unchanged.
"""
from dataclasses import dataclass, replace
from typing import Optional, Union

from classroom.types import Idle, LessonPlan, Planning, Quiz, SessionState, Teaching


@dataclass(frozen=True)
class StartLesson:
    pass


@dataclass(frozen=True)
class PlanReady:
    plan: LessonPlan


@dataclass(frozen=True)
class PlanFailed:
    pass


@dataclass(frozen=True)
class BeginLesson:
    pass


@dataclass(frozen=True)
class Next:
    pass


@dataclass(frozen=True)
class Prev:
    pass


@dataclass(frozen=True)
class Answer:
    index: int


@dataclass(frozen=True)
class NextQuestion:
    pass


@dataclass(frozen=True)
class Restart:
    pass


@dataclass(frozen=True)
class SelectSection:
    """Jump from the aggregate view straight to a section."""
    index: int


SessionEvent = Union[
    StartLesson, PlanReady, PlanFailed, BeginLesson, Next, Prev,
    Answer, NextQuestion, Restart, SelectSection,
]


def transition(state: SessionState, event: SessionEvent, plan: Optional[LessonPlan] = None) -> SessionState:
    """
    Apply ``event`` to ``state``.

    Args:
        state: Current session state
        event: Learner action or pipeline result
        plan: Active lesson plan (PlanReady carries its own)

    Returns:
        The next state, or ``state`` itself when the event is not enabled
    """
    if isinstance(event, StartLesson):
        # A new lesson may be requested from topic entry or after a finished quiz
        if isinstance(state, Idle) or (isinstance(state, Quiz) and state.finished):
            return Planning()
        return state

    if isinstance(event, PlanReady):
        if isinstance(state, Planning) and event.plan.sections:
            return Teaching(overview=True, section_index=0)
        return state

    if isinstance(event, PlanFailed):
        return Idle() if isinstance(state, Planning) else state

    if isinstance(event, Restart):
        if isinstance(state, Quiz) and state.finished:
            return Idle()
        return state

    if plan is None:
        return state

    if isinstance(state, Teaching):
        return _teaching_transition(state, event, plan)
    if isinstance(state, Quiz):
        return _quiz_transition(state, event, plan)
    return state


def _teaching_transition(state: Teaching, event: SessionEvent, plan: LessonPlan) -> SessionState:
    if isinstance(event, BeginLesson):
        if state.overview:
            return Teaching(overview=False, section_index=0)
        return state

    if isinstance(event, SelectSection):
        if 0 <= event.index < len(plan.sections):
            return Teaching(overview=False, section_index=event.index)
        return state

    if state.overview:
        return state

    if isinstance(event, Next):
        if state.section_index + 1 < len(plan.sections):
            return Teaching(overview=False, section_index=state.section_index + 1)
        if plan.quizzes:
            return Quiz()
        return state

    if isinstance(event, Prev):
        if state.section_index > 0:
            return Teaching(overview=False, section_index=state.section_index - 1)
        return state

    return state


def _quiz_transition(state: Quiz, event: SessionEvent, plan: LessonPlan) -> SessionState:
    if state.finished:
        return state

    if isinstance(event, Answer):
        if state.selected is not None:
            return state
        if not 0 <= state.quiz_index < len(plan.quizzes):
            return state
        item = plan.quizzes[state.quiz_index]
        if not 0 <= event.index < len(item.options):
            return state
        gained = 1 if event.index == item.correct_index else 0
        return replace(state, selected=event.index, score=state.score + gained)

    if isinstance(event, NextQuestion):
        if state.selected is None:
            return state
        if state.quiz_index + 1 < len(plan.quizzes):
            return Quiz(quiz_index=state.quiz_index + 1, score=state.score)
        return replace(state, finished=True)

    return state
