"""Reconstruct inter-account transfers from per-account transactions.

The working list is scanned once, front to back. Each normal transaction
looks for a partner later in the list: a transaction on another account, in
the same currency, whose amount cancels it exactly. A single same-day
partner is taken outright; anything else within the date window is handed
to an oracle (usually a human at the terminal) to pick from. Chosen pairs
are fused into a TransferTransaction that takes the first leg's place.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import timedelta

from njord.interactions import Oracle, SkipOracle
from njord.models import (
    Account,
    NormalTransaction,
    RawTransaction,
    Transaction,
    TransferTransaction,
)

# Candidates strictly inside (-CLOSE_WINDOW, +CLOSE_WINDOW) are offered to the oracle
CLOSE_WINDOW = timedelta(days=5)


@dataclass(frozen=True)
class ScoredCandidate:
    """An eligible partner for a target transaction.

    ``index`` is local to the tail slice that was scanned and ``score`` is
    the signed date difference ``target.date - candidate.date``.
    """

    transaction: NormalTransaction
    index: int
    score: timedelta


@dataclass(frozen=True)
class NoMatch:
    """No eligible partner."""


@dataclass(frozen=True)
class ObviousChoice:
    """Exactly one same-day partner."""

    candidate: ScoredCandidate


@dataclass(frozen=True)
class HumanInterventionRequired:
    """Several plausible partners; someone has to pick."""

    candidates: list[ScoredCandidate]


Match = NoMatch | ObviousChoice | HumanInterventionRequired


def classify(raw: RawTransaction, account: Account) -> NormalTransaction:
    """Bind a raw transaction to the account it was booked on."""
    return NormalTransaction(
        account=account,
        amount=raw.amount,
        currency=raw.currency,
        date=raw.date,
        additional_info=raw.additional_info,
    )


def evaluate_match(
    target: NormalTransaction, candidate: NormalTransaction
) -> timedelta | None:
    """Score ``candidate`` as the other leg of ``target``.

    Returns the signed date difference, or None if the two cannot be legs of
    the same transfer.
    """
    if target.account.id == candidate.account.id:
        return None
    if target.currency != candidate.currency:
        return None
    if target.amount + candidate.amount != 0:
        return None
    return target.date - candidate.date


def find_matches(
    target: NormalTransaction, candidates: Sequence[Transaction]
) -> list[ScoredCandidate]:
    """Return every eligible candidate, sorted by score ascending."""
    scored: list[ScoredCandidate] = []
    for index, candidate in enumerate(candidates):
        if not isinstance(candidate, NormalTransaction):
            continue
        score = evaluate_match(target, candidate)
        if score is None:
            continue
        scored.append(ScoredCandidate(transaction=candidate, index=index, score=score))

    scored.sort(key=lambda c: c.score)
    return scored


def pick_match(scored: Sequence[ScoredCandidate]) -> Match:
    """Decide whether the scored candidates settle the match on their own."""
    perfect = [c for c in scored if c.score == timedelta(0)]
    if len(perfect) == 1:
        return ObviousChoice(perfect[0])
    if perfect:
        return HumanInterventionRequired(perfect)

    close = [c for c in scored if -CLOSE_WINDOW < c.score < CLOSE_WINDOW]
    if not close:
        return NoMatch()
    return HumanInterventionRequired(close)


def fuse(target: NormalTransaction, partner: NormalTransaction) -> TransferTransaction:
    """Collapse two legs into a transfer, dated by the debit side."""
    if not isinstance(target, NormalTransaction) or not isinstance(
        partner, NormalTransaction
    ):
        raise TypeError("only normal transactions can be fused into a transfer")

    if target.amount < 0:
        source, destination = target, partner
    else:
        source, destination = partner, target

    return TransferTransaction(
        from_account=source.account,
        to_account=destination.account,
        amount=abs(target.amount),
        currency=target.currency,
        date=source.date,
        from_additional_info=source.additional_info,
        to_additional_info=destination.additional_info,
    )


class TransferMatcher:
    """
    Drives the scan over a working list of transactions.

    Usage:
        matcher = TransferMatcher(TerminalOracle())
        ledger = matcher.match(raw_transactions)
        print(matcher.transfers, matcher.prompted, matcher.declined)
    """

    def __init__(self, oracle: Oracle | None = None) -> None:
        """
        Initialize matcher.

        Args:
            oracle: Picks between ambiguous candidates (default: never picks)
        """
        self.oracle = oracle if oracle is not None else SkipOracle()
        self._transfers = 0
        self._prompted = 0
        self._declined = 0

    @property
    def transfers(self) -> int:
        """Number of pairs fused during the last run."""
        return self._transfers

    @property
    def prompted(self) -> int:
        """Number of times the oracle was consulted during the last run."""
        return self._prompted

    @property
    def declined(self) -> int:
        """Number of oracle consultations that produced no choice."""
        return self._declined

    def match(
        self, raw_transactions: Iterable[tuple[RawTransaction, Account]]
    ) -> list[Transaction]:
        """Classify raw transactions and resolve transfers among them."""
        transactions: list[Transaction] = [
            classify(raw, account) for raw, account in raw_transactions
        ]
        return self.resolve(transactions)

    def resolve(self, transactions: list[Transaction]) -> list[Transaction]:
        """
        Replace matched pairs in ``transactions`` with transfers, in place.

        The first leg's slot receives the transfer and the partner is removed.
        Entries that are already transfers are left alone.

        Returns:
            The same list object
        """
        self._transfers = 0
        self._prompted = 0
        self._declined = 0

        index = 0
        while index < len(transactions):
            target = transactions[index]
            if not isinstance(target, NormalTransaction):
                index += 1
                continue

            tail = transactions[index + 1 :]
            chosen = self._choose(target, find_matches(target, tail))
            if chosen is not None:
                assert chosen.transaction is tail[chosen.index]
                transactions[index] = fuse(target, chosen.transaction)
                del transactions[index + 1 + chosen.index]
                self._transfers += 1

            index += 1

        return transactions

    def _choose(
        self, target: NormalTransaction, scored: list[ScoredCandidate]
    ) -> ScoredCandidate | None:
        decision = pick_match(scored)
        if isinstance(decision, ObviousChoice):
            return decision.candidate
        if isinstance(decision, NoMatch):
            return None

        self._prompted += 1
        candidates = list(decision.candidates)
        try:
            chosen = self.oracle.choose(target, candidates)
        except (OSError, EOFError, KeyboardInterrupt):
            chosen = None

        if chosen is None:
            self._declined += 1
            return None

        assert chosen in decision.candidates, "oracle returned an unknown candidate"
        return chosen


def match_transactions(
    raw_transactions: Iterable[tuple[RawTransaction, Account]],
    oracle: Oracle | None = None,
) -> list[Transaction]:
    """Convenience wrapper around TransferMatcher.match()."""
    return TransferMatcher(oracle).match(raw_transactions)
