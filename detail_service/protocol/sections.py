"""
Split a streamed assistant response into its reasoning and final-answer parts.

The model is asked to answer in the form

    Step-by-step reasoning:
    ...

    Final Answer:
    ...

but it does not always comply, and the text arrives a few tokens at a time.
`classify` is therefore a pure function over the text accumulated so far:
it recognizes a small ordered table of label pairs, tolerates any amount of
whitespace between sections, and degrades to "the whole buffer is the
answer" when no reasoning label is present.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple

from detail_service.core.types import Section

# (reasoning label, answer label), highest priority first
DELIMITERS: Tuple[Tuple[str, str], ...] = (
    ("Step-by-step reasoning:", "Final Answer:"),
    ("Reasoning:", "Answer:"),
    ("Thinking:", "Answer:"),
    ("Analysis:", "Conclusion:"),
)

REASONING_LABELS: Tuple[str, ...] = tuple(dict.fromkeys(r for r, _ in DELIMITERS))
ANSWER_LABELS: Tuple[str, ...] = tuple(dict.fromkeys(a for _, a in DELIMITERS))


@dataclass(frozen=True)
class SplitResult:
    reasoning: str = ""
    final_answer: str = ""

    def to_dict(self) -> dict:
        return {"reasoning": self.reasoning, "final_answer": self.final_answer}


def _label_start(buffer: str, start: int, end: int) -> int:
    """Widen a matched answer label to the longest recognized label ending at `end`.

    "Answer:" is a suffix of "Final Answer:"; without this the word "Final"
    would be left dangling at the end of the reasoning text.
    """
    best = start
    for label in ANSWER_LABELS:
        s = end - len(label)
        if s < best and s >= 0 and buffer.startswith(label, s):
            best = s
    return best


def _find_answer(buffer: str, pos: int) -> Optional[Tuple[int, int]]:
    """Locate the earliest recognized answer label after `pos` as a (start, end) span.

    The reasoning runs up to the next recognized label, whichever pair it
    belongs to, so mixed headers ("Analysis:" ... "Answer:") still split and
    no header is left inside the reasoning.
    """
    spans: List[Tuple[int, int]] = []
    for label in ANSWER_LABELS:
        idx = buffer.find(label, pos)
        if idx != -1:
            end = idx + len(label)
            spans.append((_label_start(buffer, idx, end), end))
    if not spans:
        return None
    return min(spans)


def classify(buffer: str) -> SplitResult:
    """Classify the text received so far into reasoning and final answer.

    Never raises. With no recognized reasoning label the whole (trimmed)
    buffer is returned as the final answer.
    """
    if not buffer:
        return SplitResult()

    for reasoning_label in REASONING_LABELS:
        idx = buffer.find(reasoning_label)
        if idx == -1:
            continue
        body_start = idx + len(reasoning_label)
        span = _find_answer(buffer, body_start)
        if span is None:
            # answer header not streamed yet
            return SplitResult(reasoning=buffer[body_start:].strip())
        answer_start, answer_end = span
        return SplitResult(
            reasoning=buffer[body_start:answer_start].strip(),
            final_answer=buffer[answer_end:].strip(),
        )

    return SplitResult(final_answer=buffer.strip())


def current_section(buffer: str) -> Section:
    """Which panel a live view should show for the text received so far."""
    if any(label in buffer for label in ANSWER_LABELS):
        return Section.ANSWER
    if any(label in buffer for label in REASONING_LABELS):
        return Section.REASONING
    return Section.NONE


class SectionTracker:
    """Accumulates one streamed response and tracks the live section.

    Holds the append-only buffer for the caller; `result` is recomputed from
    the current snapshot each time it is read.
    """

    def __init__(self) -> None:
        self.text = ""
        self.section = Section.NONE

    def feed(self, delta: str) -> bool:
        """Append a chunk. Returns True when the live section changed."""
        if not delta:
            return False
        self.text += delta
        section = current_section(self.text)
        changed = section != self.section
        self.section = section
        return changed

    @property
    def result(self) -> SplitResult:
        return classify(self.text)

    def reset(self) -> None:
        self.text = ""
        self.section = Section.NONE
