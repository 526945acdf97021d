from .models import (
    ChoicePayload,
    Difficulty,
    DistractionPrompt,
    ImageChoicePayload,
    MemorizePayload,
    OpenTextPayload,
    Option,
    Question,
    QuestionType,
    SequencePayload,
    TrueFalsePayload,
)
from .bank import InMemoryQuestionBank, QuestionBank, load_question_bank

__all__ = [
    "ChoicePayload",
    "Difficulty",
    "DistractionPrompt",
    "ImageChoicePayload",
    "MemorizePayload",
    "OpenTextPayload",
    "Option",
    "Question",
    "QuestionType",
    "SequencePayload",
    "TrueFalsePayload",
    "InMemoryQuestionBank",
    "QuestionBank",
    "load_question_bank",
]
