"""
Narrated micro-lesson classroom.

This package runs one interactive lesson session:
1. Lesson plan generation for a topic or source text
2. Teaching walk-through with narration and board illustrations
3. Scored multiple-choice quiz
4. Illustration post-processing (transparent sprite backgrounds)
"""
