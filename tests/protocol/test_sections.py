import pytest

from detail_service.core.types import Section
from detail_service.protocol.sections import (
    DELIMITERS,
    SectionTracker,
    SplitResult,
    classify,
    current_section,
)

SKY = (
    "Step-by-step reasoning:\nThe sky is blue due to Rayleigh scattering.\n\n"
    "Final Answer:\nThe sky appears blue because of Rayleigh scattering."
)


class TestClassify:
    """classify() over complete and partial buffers."""

    def test_reasoning_and_final_answer(self):
        assert classify(SKY) == SplitResult(
            reasoning="The sky is blue due to Rayleigh scattering.",
            final_answer="The sky appears blue because of Rayleigh scattering.",
        )

    def test_partial_stream_has_reasoning_only(self):
        result = classify("Step-by-step reasoning:\nFirst, we consider")
        assert result == SplitResult(reasoning="First, we consider", final_answer="")

    def test_unstructured_text_is_the_answer(self):
        result = classify("Paris is the capital of France.")
        assert result == SplitResult(reasoning="", final_answer="Paris is the capital of France.")

    def test_unstructured_text_is_trimmed(self):
        assert classify("\n  Paris.  \n").final_answer == "Paris."

    def test_fallback_pair(self):
        result = classify("Analysis:\nX causes Y.\n\nConclusion:\nY happens.")
        assert result == SplitResult(reasoning="X causes Y.", final_answer="Y happens.")

    def test_empty_buffer(self):
        assert classify("") == SplitResult()

    def test_label_without_body_yet(self):
        assert classify("Step-by-step reasoning:") == SplitResult()

    @pytest.mark.parametrize("reasoning_label,answer_label", DELIMITERS)
    def test_every_pair(self, reasoning_label, answer_label):
        text = f"{reasoning_label}\n  because A  \n\n{answer_label}\n  so B \n"
        assert classify(text) == SplitResult("because A", "so B")

    def test_any_whitespace_between_sections(self):
        assert classify("Step-by-step reasoning: R Final Answer: A") == SplitResult("R", "A")
        assert classify("Reasoning:\r\nR\r\n\r\n\r\nAnswer:\r\nA") == SplitResult("R", "A")

    def test_final_answer_header_with_short_reasoning_label(self):
        # "Answer:" inside "Final Answer:" must not leave "Final" in the reasoning
        result = classify("Reasoning:\nfoo\n\nFinal Answer:\nbar")
        assert result == SplitResult("foo", "bar")

    def test_mixed_labels_fall_back_to_any_answer_label(self):
        assert classify("Analysis:\nX\n\nAnswer:\nY") == SplitResult("X", "Y")

    def test_reasoning_stops_at_next_recognized_label(self):
        result = classify("Reasoning:\nX\n\nConclusion:\nY\n\nAnswer:\nZ")
        assert result.reasoning == "X"
        assert result.final_answer.startswith("Y")

    def test_bare_answer_label_before_final_answer(self):
        result = classify("Step-by-step reasoning:\nX\n\nAnswer:\nY\n\nFinal Answer:\nZ")
        assert result.reasoning == "X"
        assert result.final_answer.startswith("Y")

    def test_no_answer_label_leaks_into_reasoning(self):
        texts = [
            "Reasoning:\nX\n\nConclusion:\nY\n\nAnswer:\nZ",
            "Step-by-step reasoning:\nX\n\nAnswer:\nY\n\nFinal Answer:\nZ",
            "Thinking:\nX\nFinal Answer: Y\nConclusion: Z",
        ]
        for text in texts:
            reasoning = classify(text).reasoning
            assert not any(label in reasoning for label in ("Final Answer:", "Answer:", "Conclusion:"))

    def test_earlier_pair_wins(self):
        text = (
            "Reasoning:\nA\n\nAnswer:\nB\n\n"
            "Step-by-step reasoning:\nC\n\nFinal Answer:\nD"
        )
        assert classify(text) == SplitResult("C", "D")

    def test_reasoning_beats_thinking(self):
        text = "Thinking:\nT\n\nReasoning:\nR\n\nAnswer:\nA"
        assert classify(text) == SplitResult("R", "A")

    def test_text_before_label_is_dropped(self):
        assert classify("Sure! Here you go.\nReasoning: x\nAnswer: y") == SplitResult("x", "y")

    def test_labels_are_case_sensitive(self):
        text = "reasoning: x\nanswer: y"
        assert classify(text) == SplitResult("", text)

    def test_answer_label_without_reasoning_is_plain_answer(self):
        assert classify("Final Answer: 42") == SplitResult("", "Final Answer: 42")

    def test_sections_are_substrings_in_order(self):
        result = classify(SKY)
        assert result.reasoning in SKY
        assert result.final_answer in SKY
        assert SKY.index(result.reasoning) < SKY.rindex(result.final_answer)

    def test_never_raises_on_odd_input(self):
        for text in ["Answer:", ":::", "Conclusion:\nReasoning:", "Thinking:" * 3, "\x00\ufffd"]:
            assert isinstance(classify(text), SplitResult)


class TestStreamingProperties:
    """Behaviour while the buffer grows one chunk at a time."""

    @pytest.mark.parametrize("step", [1, 3, 7])
    def test_detected_reasoning_is_never_lost(self, step):
        seen_reasoning = False
        for end in range(step, len(SKY) + step, step):
            result = classify(SKY[:end])
            if seen_reasoning:
                assert result.reasoning
            seen_reasoning = seen_reasoning or bool(result.reasoning)
        assert seen_reasoning

    def test_later_higher_priority_label_takes_over(self):
        # priority wins over keeping the earlier reasoning
        assert classify("Thinking:\nweighing sources").reasoning == "weighing sources"
        assert classify("Thinking:\nweighing sources\nReasoning:") == SplitResult()
        assert classify("Thinking:\nweighing sources\nReasoning: r") == SplitResult("r", "")

    def test_final_split_matches_complete_text(self):
        tracker = SectionTracker()
        for i in range(0, len(SKY), 5):
            tracker.feed(SKY[i : i + 5])
        assert tracker.result == classify(SKY)

    @pytest.mark.parametrize("reasoning_label,answer_label", DELIMITERS)
    def test_reassembled_split_is_stable(self, reasoning_label, answer_label):
        original = f"{reasoning_label}\nstep one\nstep two\n\n{answer_label}\nthe answer\n"
        first = classify(original)
        rebuilt = f"{reasoning_label}\n{first.reasoning}\n\n{answer_label}\n{first.final_answer}"
        assert classify(rebuilt) == first


class TestCurrentSection:
    def test_none_without_labels(self):
        assert current_section("Paris is the capital") == Section.NONE

    def test_reasoning_label(self):
        assert current_section("Step-by-step reasoning:\nFirst, we consider") == Section.REASONING
        assert current_section("Thinking: hmm") == Section.REASONING

    def test_any_answer_label_wins(self):
        assert current_section(SKY) == Section.ANSWER
        assert current_section("Answer: yes") == Section.ANSWER
        assert current_section("Analysis: a\nConclusion: c") == Section.ANSWER


class TestSectionTracker:
    def test_transitions_are_reported_once(self):
        tracker = SectionTracker()
        changes = []
        for chunk in ["Step-by-step ", "reasoning:\n", "The sky", " is blue.\n\n", "Final ", "Answer:\n", "Blue."]:
            if tracker.feed(chunk):
                changes.append(tracker.section)
        assert changes == [Section.REASONING, Section.ANSWER]
        assert tracker.result == SplitResult("The sky is blue.", "Blue.")

    def test_empty_delta_is_ignored(self):
        tracker = SectionTracker()
        assert tracker.feed("") is False
        assert tracker.text == ""
        assert tracker.section == Section.NONE

    def test_unstructured_stream_stays_none(self):
        tracker = SectionTracker()
        for chunk in ["Paris ", "is the ", "capital."]:
            assert tracker.feed(chunk) is False
        assert tracker.section == Section.NONE
        assert tracker.result.final_answer == "Paris is the capital."

    def test_reset(self):
        tracker = SectionTracker()
        tracker.feed("Reasoning: x")
        tracker.reset()
        assert tracker.text == ""
        assert tracker.section == Section.NONE
        assert tracker.result == SplitResult()
