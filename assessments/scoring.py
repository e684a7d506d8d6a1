"""
Mock test scoring.

Every question is classified as correct, incorrect or unanswered; there is no
partial credit and no negative marking.
"""
import logging
import math
import re
from dataclasses import dataclass, asdict

from django.db import transaction
from django.utils import timezone

from mocks.models import Question

from .models import MockAttempt

logger = logging.getLogger(__name__)

NAT_TOLERANCE = 0.001

_QUOTES = re.compile(r"[\"']")
_OPTION_LETTER = re.compile(r"^[A-Za-z]$")


@dataclass(frozen=True)
class ScoreResult:
    correct_count: int
    incorrect_count: int
    unanswered_count: int
    total_questions: int
    percentage: int

    def as_dict(self):
        return asdict(self)


def _strip_quotes(value):
    return _QUOTES.sub('', value)


def _resolve_letter(token, options):
    """Maps a single option letter (A, b, ...) to that option's text."""
    if options and _OPTION_LETTER.match(token):
        index = ord(token.upper()) - ord('A')
        if index < len(options):
            return options[index]
    return token


def _msq_tokens(raw, options):
    tokens = (_resolve_letter(t.strip(), options) for t in _strip_quotes(raw).split(';'))
    return sorted(t for t in tokens if t != '')


def _is_msq_correct(correct, submitted, options):
    return _msq_tokens(correct, options) == _msq_tokens(submitted, options)


def _parse_number(raw):
    try:
        value = float(_strip_quotes(raw).strip())
    except ValueError:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def _is_nat_correct(correct, submitted):
    expected = _parse_number(correct)
    given = _parse_number(submitted)
    if expected is None or given is None:
        return False
    return abs(expected - given) < NAT_TOLERANCE


def _is_choice_correct(correct, submitted, options):
    correct = _strip_quotes(correct)
    submitted = _strip_quotes(submitted)
    if submitted == correct:
        return True
    # Either side may be stored as an option letter instead of the option text
    if options and _OPTION_LETTER.match(correct):
        return submitted == _resolve_letter(correct, options)
    if options and _OPTION_LETTER.match(submitted):
        return _resolve_letter(submitted, options) == correct
    return False


def is_answer_correct(question, submitted):
    """Verdict for an answered question. `submitted` must be a non-empty string."""
    options = question.options or []
    q_type = question.question_type

    if q_type == Question.QuestionType.MSQ:
        return _is_msq_correct(question.answer, submitted, options)
    if q_type == Question.QuestionType.NAT:
        return _is_nat_correct(question.answer, submitted)
    if q_type == Question.QuestionType.DESCRIPTIVE:
        # No content grading, any non-blank attempt counts
        return submitted.strip() != ''
    return _is_choice_correct(question.answer, submitted, options)


def round_half_up(value):
    return int(math.floor(value + 0.5))


def evaluate(questions, answers):
    """
    Scores `answers` ({question id: answer string}) against `questions`.
    Keys are matched on str(question.id).
    """
    answers = answers or {}
    correct = incorrect = unanswered = 0
    total = 0

    for question in questions:
        total += 1
        submitted = answers.get(str(question.id))
        if submitted is None or submitted == '':
            unanswered += 1
            continue

        if is_answer_correct(question, str(submitted)):
            correct += 1
        else:
            incorrect += 1

    percentage = round_half_up(correct / total * 100) if total else 0
    return ScoreResult(correct, incorrect, unanswered, total, percentage)


def review(questions, answers):
    """Per-question breakdown shown on the result page."""
    answers = answers or {}
    rows = []
    for question in questions:
        submitted = answers.get(str(question.id))
        if submitted is None or submitted == '':
            verdict = 'unanswered'
        elif is_answer_correct(question, str(submitted)):
            verdict = 'correct'
        else:
            verdict = 'incorrect'
        rows.append({
            'question_id': question.id,
            'submitted': submitted,
            'correct_answer': question.answer,
            'explanation': question.explanation,
            'result': verdict,
        })
    return rows


class AlreadySubmitted(Exception):
    pass


def submit_attempt(attempt, answers):
    """
    Scores and persists the attempt in one terminal write.

    The row is locked and re-read first, so two concurrent submissions of the
    same attempt cannot both pass the submitted check.
    """
    with transaction.atomic():
        locked = MockAttempt.objects.select_for_update().get(pk=attempt.pk)
        if locked.is_submitted:
            raise AlreadySubmitted(f"Attempt {attempt.id} was already submitted")

        result = evaluate(attempt.mock_test.questions.all(), answers)

        attempt.answers = answers
        attempt.score = result.correct_count
        attempt.correct_count = result.correct_count
        attempt.incorrect_count = result.incorrect_count
        attempt.unanswered_count = result.unanswered_count
        attempt.total_questions = result.total_questions
        attempt.percentage = result.percentage
        attempt.submitted_at = timezone.now()
        attempt.save()

    logger.info(
        "Scored attempt %s: %s/%s correct, %s incorrect, %s unanswered (%s%%)",
        attempt.id, result.correct_count, result.total_questions,
        result.incorrect_count, result.unanswered_count, result.percentage,
    )
    return result
