"""
Spoken phrasing for narration that is not taken verbatim from the plan.

The quiz prompt must be built by ``quiz_narration`` for both playback and
prefetch, otherwise the two cache keys diverge.
"""
from typing import Optional

from classroom.config import config
from classroom.types import QuizItem

PHRASES = {
    'en': {
        'intro': "{greeting} Today we are going to learn about {topic}. Watch the board closely.",
        'question': "Question {number}. {question}. {options}. Pick the answer.",
        'option': "{number}, {option}",
        'finished': "All the quizzes are done. You got {score} out of {total} right! Great job!",
    },
    'ko': {
        'intro': "{greeting} 오늘은 {topic}에 대해 배워볼 거야. 칠판을 잘 보렴.",
        'question': "문제 {number}번. {question}. {options}. 정답을 골라봐.",
        'option': "{number}번, {option}",
        'finished': "모든 퀴즈가 끝났어. {total}문제 중에 {score}문제를 맞췄구나! 참 잘했어!",
    },
}

OPTION_SEPARATOR = ". "


def _phrases(language: Optional[str]) -> dict:
    return PHRASES.get(language or config.narration_language, PHRASES['en'])


def quiz_narration(index: int, quiz: QuizItem, language: Optional[str] = None) -> str:
    """Read-aloud text for quiz question ``index`` (0-based)."""
    phrases = _phrases(language)
    options = OPTION_SEPARATOR.join(
        phrases['option'].format(number=i + 1, option=option)
        for i, option in enumerate(quiz.options)
    )
    return phrases['question'].format(
        number=index + 1,
        question=quiz.question,
        options=options,
    )


def lesson_intro(greeting: str, topic: str, language: Optional[str] = None) -> str:
    return _phrases(language)['intro'].format(greeting=greeting, topic=topic).strip()


def quiz_finished(score: int, total: int, language: Optional[str] = None) -> str:
    return _phrases(language)['finished'].format(score=score, total=total)
