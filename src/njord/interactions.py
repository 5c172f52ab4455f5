"""Terminal interactions: the transfer oracle and small input() prompts."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

from njord.models import NormalTransaction

if TYPE_CHECKING:
    from njord.matcher import ScoredCandidate


class Oracle(ABC):
    """Picks the other half of a transfer when the matcher can't decide."""

    @abstractmethod
    def choose(
        self,
        target: NormalTransaction,
        candidates: Sequence["ScoredCandidate"],
    ) -> "ScoredCandidate | None":
        """
        Choose at most one of ``candidates`` as the partner of ``target``.

        Args:
            target: Transaction looking for its other leg
            candidates: Non-empty list of plausible partners, in display order

        Returns:
            One element of ``candidates``, or None to leave ``target`` unmatched
        """
        pass


class SkipOracle(Oracle):
    """Never picks. Used for non-interactive runs."""

    def choose(
        self,
        target: NormalTransaction,
        candidates: Sequence["ScoredCandidate"],
    ) -> "ScoredCandidate | None":
        return None


def format_score(candidate: "ScoredCandidate") -> str:
    """Render a candidate's date offset, e.g. ``-2 days``."""
    return f"{candidate.score.days:+d} days"


class TerminalOracle(Oracle):
    """Asks the user at the terminal."""

    def choose(
        self,
        target: NormalTransaction,
        candidates: Sequence["ScoredCandidate"],
    ) -> "ScoredCandidate | None":
        print("\nTrying to figure out if the following transaction is part of a transfer:")
        print(f"  {target}")
        print()
        for i, candidate in enumerate(candidates, 1):
            print(f"  [{i}] [{format_score(candidate)}] {candidate.transaction}")

        while True:
            try:
                choice = input(
                    f"Which is the other half of the transfer? [1-{len(candidates)}] "
                    "or 's' to skip: "
                ).strip().lower()
            except (EOFError, KeyboardInterrupt):
                print()
                return None

            if choice in ("", "s"):
                return None

            try:
                idx = int(choice) - 1
            except ValueError:
                idx = -1
            if 0 <= idx < len(candidates):
                return candidates[idx]
            print(f"  Invalid. Enter 1-{len(candidates)} or 's' to skip.")


def prompt_text(label: str, default: str | None = None) -> str:
    """Ask for a line of text; an empty answer returns ``default`` if set."""
    suffix = f" [{default}]" if default else ""
    while True:
        value = input(f"{label}{suffix}: ").strip()
        if value:
            return value
        if default:
            return default


def confirm(question: str, default: bool = True) -> bool:
    """Ask a yes/no question."""
    hint = "[Y/n]" if default else "[y/N]"
    while True:
        answer = input(f"{question} {hint}: ").strip().lower()
        if not answer:
            return default
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False
        print("  Please answer 'y' or 'n'.")


def select_many(options: Sequence[str], message: str) -> list[int]:
    """
    Let the user pick any number of options by 1-based number.

    Accepts comma or space separated numbers, 'a' for all, or an empty line
    for none.

    Returns:
        Sorted 0-based indices of the chosen options
    """
    for i, option in enumerate(options, 1):
        print(f"  [{i}] {option}")

    while True:
        answer = input(f"{message} [1-{len(options)}, 'a' for all]: ").strip().lower()
        if not answer:
            return []
        if answer == "a":
            return list(range(len(options)))

        chosen: set[int] = set()
        for token in answer.replace(",", " ").split():
            try:
                idx = int(token) - 1
            except ValueError:
                break
            if not 0 <= idx < len(options):
                break
            chosen.add(idx)
        else:
            return sorted(chosen)
        print(f"  Invalid. Enter numbers between 1 and {len(options)}.")
