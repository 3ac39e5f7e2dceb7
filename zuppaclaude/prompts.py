"""Interactive terminal prompts."""

from __future__ import annotations

from typing import Callable, List, Optional


class Prompts:
    """Yes/no and numbered-choice questions on stdin.

    *input_fn* defaults to :func:`input`; tests pass a scripted callable.
    End-of-input counts as the default answer (confirm) or a cancel
    (number/select).
    """

    def __init__(self, input_fn: Optional[Callable[[str], str]] = None) -> None:
        self._input = input_fn or input

    def _ask(self, prompt: str) -> Optional[str]:
        try:
            return self._input(prompt)
        except EOFError:
            return None

    def confirm(self, question: str, default: bool = True) -> bool:
        suffix = "[Y/n]" if default else "[y/N]"
        answer = self._ask(f"{question} {suffix} ")
        if answer is None:
            return default
        answer = answer.strip().lower()
        if not answer:
            return default
        return answer in ("y", "yes")

    def number(self, question: str, low: int, high: int) -> Optional[int]:
        """Ask for an integer in ``[low, high]``; re-asks on bad input."""
        while True:
            answer = self._ask(f"{question} ")
            if answer is None:
                return None
            answer = answer.strip()
            if not answer:
                return None
            try:
                value = int(answer)
            except ValueError:
                print(f"  Please enter a number between {low} and {high}")
                continue
            if low <= value <= high:
                return value
            print(f"  Please enter a number between {low} and {high}")

    def select(self, question: str, options: List[str]) -> Optional[int]:
        """Show a 1-based menu; returns the 0-based index or None."""
        for i, option in enumerate(options, 1):
            print(f"  {i}. {option}")
        choice = self.number(question, 1, len(options))
        return None if choice is None else choice - 1
