import pytest

from mocks.models import Question
from assessments.models import MockAttempt
from assessments.scoring import (
    AlreadySubmitted, evaluate, is_answer_correct, review, round_half_up, submit_attempt,
)


def make_question(pk, q_type="MCQ", answer="A", options=None):
    return Question(id=pk, text=f"Q{pk}", question_type=q_type, answer=answer, options=options or [])


class TestAnswerRules:
    def test_mcq_exact_match(self):
        q = make_question(1, answer="Paris", options=["Paris", "Rome"])
        assert is_answer_correct(q, "Paris")
        assert not is_answer_correct(q, "paris")

    def test_mcq_letter_resolves_to_option_text(self):
        q = make_question(1, answer="B", options=["Paris", "Rome"])
        assert is_answer_correct(q, "Rome")
        assert is_answer_correct(q, "B")
        assert not is_answer_correct(q, "Paris")

    def test_mcq_submitted_letter_against_text_answer(self):
        q = make_question(1, answer="Rome", options=["Paris", "Rome"])
        assert is_answer_correct(q, "B")

    def test_quotes_are_ignored(self):
        q = make_question(1, answer='"Paris"', options=["Paris", "Rome"])
        assert is_answer_correct(q, "Paris")

    def test_msq_is_order_independent(self):
        q = make_question(1, q_type="MSQ", answer="A;C", options=["x", "y", "z"])
        assert is_answer_correct(q, "z; x")
        assert is_answer_correct(q, "C;A;")
        assert not is_answer_correct(q, "A")
        assert not is_answer_correct(q, "A;B;C")

    @pytest.mark.parametrize("submitted, expected", [
        ("9.81", True),
        ("9.8105", True),
        ("9.812", False),
        ("abc", False),
        ("nan", False),
        ("inf", False),
    ])
    def test_nat_tolerance(self, submitted, expected):
        q = make_question(1, q_type="NAT", answer="9.81")
        assert is_answer_correct(q, submitted) is expected

    def test_descriptive_needs_content(self):
        q = make_question(1, q_type="DESCRIPTIVE", answer="anything")
        assert is_answer_correct(q, "My essay")
        assert not is_answer_correct(q, "   ")


class TestEvaluate:
    def test_five_question_example(self):
        questions = [
            make_question(1, answer="A", options=["a1", "a2"]),
            make_question(2, answer="B", options=["b1", "b2"]),
            make_question(3, answer="A", options=["c1", "c2"]),
            make_question(4, q_type="NAT", answer="2.5"),
            make_question(5, answer="A", options=["e1", "e2"]),
        ]
        answers = {"1": "A", "2": "b2", "3": "c1", "4": "2.5005"}

        result = evaluate(questions, answers)

        assert result.correct_count == 4
        assert result.incorrect_count == 0
        assert result.unanswered_count == 1
        assert result.total_questions == 5
        assert result.percentage == 80

    def test_counts_always_add_up(self):
        questions = [make_question(i, answer="A", options=["x", "y"]) for i in range(1, 8)]
        answers = {"1": "A", "2": "B", "3": "", "5": "x", "7": "nope"}
        result = evaluate(questions, answers)
        assert result.correct_count + result.incorrect_count + result.unanswered_count == result.total_questions
        assert (result.correct_count, result.incorrect_count, result.unanswered_count) == (2, 2, 3)

    def test_no_questions_scores_zero(self):
        result = evaluate([], {"1": "A"})
        assert result.total_questions == 0
        assert result.percentage == 0

    def test_percentage_rounds_half_up(self):
        # 1 of 8 = 12.5%
        questions = [make_question(i, answer="A", options=["x", "y"]) for i in range(1, 9)]
        assert evaluate(questions, {"1": "A"}).percentage == 13
        assert round_half_up(66.49) == 66
        assert round_half_up(66.5) == 67

    def test_answers_for_unknown_questions_are_ignored(self):
        questions = [make_question(1, answer="A", options=["x", "y"])]
        result = evaluate(questions, {"99": "A"})
        assert result.unanswered_count == 1


def test_review_marks_each_question():
    questions = [
        make_question(1, answer="A", options=["x", "y"]),
        make_question(2, answer="B", options=["x", "y"]),
        make_question(3, answer="A", options=["x", "y"]),
    ]
    rows = review(questions, {"1": "A", "2": "A"})
    assert [r['result'] for r in rows] == ['correct', 'incorrect', 'unanswered']
    assert rows[1]['correct_answer'] == "B"


@pytest.mark.django_db
def test_submit_rechecks_the_stored_attempt(student, mock_with_questions):
    first = MockAttempt.objects.create(user=student, mock_test=mock_with_questions)
    stale = MockAttempt.objects.get(pk=first.pk)

    submit_attempt(first, {})
    assert stale.submitted_at is None

    with pytest.raises(AlreadySubmitted):
        submit_attempt(stale, {"1": "Newton"})

    stored = MockAttempt.objects.get(pk=first.pk)
    assert stored.answers == {}
    assert stored.submitted_at == first.submitted_at
