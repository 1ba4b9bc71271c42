"""
Unit tests for question presentability checks.
"""
import unittest

from quizbot.models import Question
from quizbot.validation import is_presentable, validate_question


class TestValidateQuestion(unittest.TestCase):

    def test_valid_question_has_no_issues(self):
        question = Question("2+2?", ["3", "4"], [1])
        self.assertEqual(validate_question(question), [])
        self.assertTrue(is_presentable(question))

    def test_missing_prompt(self):
        issues = validate_question(Question("", ["a", "b"], [0]))
        self.assertEqual(issues, ["missing prompt"])

    def test_too_few_options(self):
        issues = validate_question(Question("Q", ["only"], [0]))
        self.assertIn("needs ≥2 options", issues)

    def test_too_many_options(self):
        options = [str(i) for i in range(26)]
        issues = validate_question(Question("Q", options, [0]))
        self.assertEqual(issues, ["≤25 options supported"])

    def test_twenty_five_options_is_allowed(self):
        options = [str(i) for i in range(25)]
        self.assertTrue(is_presentable(Question("Q", options, [24])))

    def test_missing_answers(self):
        issues = validate_question(Question("Q", ["a", "b"], []))
        self.assertEqual(issues, ["missing answer(s)"])

    def test_answer_out_of_range(self):
        self.assertEqual(validate_question(Question("Q", ["a", "b"], [2])), ["answer index out of range"])
        self.assertEqual(validate_question(Question("Q", ["a", "b"], [-1])), ["answer index out of range"])

    def test_issues_reported_in_fixed_order(self):
        issues = validate_question(Question("", [], [0]))
        self.assertEqual(issues, ["missing prompt", "needs ≥2 options", "answer index out of range"])


if __name__ == '__main__':
    unittest.main()
