# mocks/validators.py
from .models import Question

VALID_TYPES = Question.QuestionType.values


class QuestionValidationError(ValueError):
    pass


def _is_number(value):
    try:
        float(str(value).replace('"', '').replace("'", ''))
    except (TypeError, ValueError):
        return False
    return True


def validate_question_payload(item, index):
    """Checks one raw question dict. `index` is 1-based and only used in messages."""
    if not isinstance(item, dict):
        raise QuestionValidationError(f"Question {index} must be an object")
    text = item.get('question') or item.get('text')
    q_type = (item.get('type') or item.get('question_type') or '').upper()
    answer = item.get('answer')

    if not text or not q_type or answer in (None, ''):
        raise QuestionValidationError(f"Question {index} is missing required fields")

    if q_type not in VALID_TYPES:
        raise QuestionValidationError(
            f"Question {index}: Invalid type '{q_type}'. Must be one of: {', '.join(VALID_TYPES)}"
        )

    options = item.get('options') or []
    if q_type in (Question.QuestionType.MCQ, Question.QuestionType.MSQ):
        if not isinstance(options, list) or len(options) < 2:
            raise QuestionValidationError(f"Question {index}: MCQ/MSQ questions require at least 2 options")

    if q_type == Question.QuestionType.NAT and not _is_number(answer):
        raise QuestionValidationError(f"Question {index}: NAT questions require a numerical answer")

    return {
        'text': text,
        'question_type': q_type,
        'answer': str(answer),
        'options': [str(o) for o in options],
        'explanation': item.get('explanation', '') or '',
    }


def validate_question_batch(items):
    """Validates every item first so a bad row aborts the whole batch."""
    if not isinstance(items, list) or not items:
        raise QuestionValidationError("Questions array is required")
    return [validate_question_payload(item, i) for i, item in enumerate(items, start=1)]
