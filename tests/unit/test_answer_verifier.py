"""
Unit tests for the answer verifier handlers.

Covers every registered widget type plus the dispatcher's fallbacks:
- unknown or missing widget types are incorrect, never errors
- malformed answers are incorrect, never errors
"""

import pytest

from atomic_mastery.verifier import HANDLERS, WidgetType, check_answer, get_handler, is_gradable
from atomic_mastery.verifier.base import QuestionRecord


def q(widget_type, spec, question_id="q1", atom_id="A"):
    return QuestionRecord(id=question_id, atom_id=atom_id, widget_type=widget_type, correct_answer_spec=spec)


class TestRegistry:
    def test_all_widget_types_registered(self):
        assert set(HANDLERS) == set(WidgetType)

    def test_lookup_is_case_insensitive(self):
        assert get_handler("mcq") is HANDLERS[WidgetType.MCQ]
        assert get_handler(" fill_blanks ") is HANDLERS[WidgetType.FILL_BLANKS]

    def test_unknown_type(self):
        assert get_handler("HOTSPOT") is None
        assert get_handler(None) is None


class TestSingleChoice:
    def test_trimmed_string_equality(self):
        assert check_answer(q("MCQ", "Paris"), "  Paris ")

    def test_wrong_choice(self):
        assert not check_answer(q("MCQ", "Paris"), "Lyon")

    def test_case_matters(self):
        assert not check_answer(q("MCQ", "Paris"), "paris")

    def test_numbers_compare_as_text(self):
        assert check_answer(q("MCQ", 2), "2")

    @pytest.mark.parametrize("answer", [True, "true"])
    def test_boolean_rendering(self, answer):
        assert check_answer(q("TRUE_FALSE", True), answer)

    def test_yes_no(self):
        assert check_answer(q("YES_NO", "yes"), "yes")
        assert not check_answer(q("YES_NO", "yes"), "no")

    def test_container_answer_is_wrong(self):
        assert not check_answer(q("MCQ", "a"), ["a"])


class TestMultiSelect:
    def test_order_does_not_matter(self):
        assert check_answer(q("MCM", ["a", "c"]), ["c", "a"])

    def test_missing_selection(self):
        assert not check_answer(q("MCM", ["a", "c"]), ["a"])

    def test_duplicates_matter(self):
        assert not check_answer(q("MCM", ["a"]), ["a", "a"])

    def test_non_list_answer(self):
        assert not check_answer(q("MCM", ["a"]), "a")

    def test_mixed_types_match_in_any_order(self):
        assert check_answer(q("MCM", [1, "1"]), ["1", 1])
        assert check_answer(q("MCM", ["1", 1]), [1, "1"])

    def test_bool_is_not_a_number(self):
        assert not check_answer(q("MCM", [1]), [True])
        assert not check_answer(q("MCM", [1, 0]), [False, True])


class TestOrdering:
    def test_exact_sequence(self):
        assert check_answer(q("ORDERING", ["1", "2", "3"]), ["1", "2", "3"])

    def test_wrong_order(self):
        assert not check_answer(q("ORDERING", ["1", "2", "3"]), ["2", "1", "3"])

    def test_bool_is_not_a_number(self):
        assert not check_answer(q("ORDERING", [1, 2]), [True, 2])


class TestMatching:
    def test_key_order_irrelevant(self):
        spec = {"TCP": "reliable", "UDP": "fast"}

        assert check_answer(q("MATCHING", spec), {"UDP": "fast", "TCP": "reliable"})

    def test_wrong_pair(self):
        spec = {"TCP": "reliable", "UDP": "fast"}

        assert not check_answer(q("MATCHING", spec), {"TCP": "fast", "UDP": "reliable"})

    def test_nested_values_compared_deeply(self):
        spec = {"a": ["x", "y"], "b": {"c": 1}}

        assert check_answer(q("MATCHING", spec), {"b": {"c": 1}, "a": ["x", "y"]})
        assert not check_answer(q("MATCHING", spec), {"b": {"c": 2}, "a": ["x", "y"]})

    def test_list_answer_is_wrong(self):
        assert not check_answer(q("MATCHING", {"a": 1, "b": 2}), [["a", 1], ["b", 2]])

    def test_bool_values_do_not_match_numbers(self):
        spec = {"a": 1, "b": 0}

        assert not check_answer(q("MATCHING", spec), {"a": True, "b": False})
        assert not check_answer(q("MATCHING", {"a": [1], "b": 2}), {"a": [True], "b": 2})


class TestFillBlanks:
    def test_exact_blanks(self):
        assert check_answer(q("FILL_BLANKS", ["router", "switch"]), ["router", "switch"])

    def test_length_mismatch(self):
        assert not check_answer(q("FILL_BLANKS", ["router", "switch"]), ["router"])

    def test_no_normalisation(self):
        assert not check_answer(q("FILL_BLANKS", ["router"]), [" router"])

    def test_bool_is_not_a_number(self):
        assert not check_answer(q("FILL_BLANKS", [1, 0]), [True, False])
        assert check_answer(q("FILL_BLANKS", [1, 0]), [1, 0])


class TestDispatch:
    def test_unknown_type_is_incorrect(self):
        assert check_answer(q("HOTSPOT", "x"), "x") is False

    def test_question_type_wins_over_submission_type(self):
        question = q("MCM", ["a", "b"])

        assert check_answer(question, ["b", "a"], widget_type="ORDERING")

    def test_submission_type_used_as_fallback(self):
        assert check_answer(q(None, ["a", "b"]), ["a", "b"], widget_type="ORDERING")

    def test_none_answer_is_incorrect(self):
        for widget_type in WidgetType:
            assert check_answer(q(widget_type.value, ["a", "b"]), None) is False

    def test_deterministic(self):
        question = q("MCM", ["x", "y", "z"])
        answer = ["z", "x", "y"]

        results = {check_answer(question, answer) for _ in range(20)}

        assert results == {True}


class TestGradable:
    def test_usable_specs(self):
        assert is_gradable(q("MCQ", "a"))
        assert is_gradable(q("ORDERING", ["a", "b"]))
        assert is_gradable(q("MATCHING", {"a": 1, "b": 2}))

    def test_unusable_specs(self):
        assert not is_gradable(q("MCQ", ""))
        assert not is_gradable(q("ORDERING", ["only"]))
        assert not is_gradable(q("MCM", []))
        assert not is_gradable(q("HOTSPOT", "x"))
