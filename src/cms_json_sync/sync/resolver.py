"""Conflict resolution for JSON imports.

An import result may hold items with action ``conflict``: records whose slug
matches an item that already exists.  Each needs a decision, update the
existing item or skip the record, before the result can be committed.

Sequencer
---------
The sequencer walks the conflicting items one at a time.  Its state is an
immutable value and every transition is a pure function returning the next
state::

    state = start(result)                 # Active(...) or Resolved(...)
    state = set_apply_to_all(state, True)
    state = choose_update(state)          # Resolved: every conflict updated

With *apply to all* off, a choice decides the current item and advances to
the next conflict.  With it on, the same choice is folded over the current
and every remaining conflict and the walk ends.  Items with action ``add``
pass through untouched.  ``ConflictSequencer`` wraps the functions for
callers that prefer a mutable step API.

Strategies
----------
- ``InteractiveResolver``: asks a prompt callback for each conflict.
- ``DecisionMapResolver``: per-slug decisions with a default.
- ``UpdateAllResolver`` / ``SkipAllResolver``: one decision for everything.

The ``create_resolver()`` factory maps config strategy strings to resolver
instances.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from functools import reduce
from typing import NamedTuple, Protocol

from cms_json_sync.errors import SequencerError
from cms_json_sync.sync.models import (
    ImportAction,
    ImportResult,
    ImportResultItem,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Sequencer state
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Active:
    """A conflict is awaiting a decision.

    Attributes:
        items: Every result item, in result order.
        current: Index into *items* of the conflict being decided.
        remaining: Indices of the conflicts after *current*, in order.
        apply_to_all: Whether the next choice also decides *remaining*.
    """

    items: tuple[ImportResultItem, ...]
    current: int
    remaining: tuple[int, ...]
    apply_to_all: bool = False

    @property
    def current_item(self) -> ImportResultItem:
        return self.items[self.current]


@dataclass(frozen=True, slots=True)
class Resolved:
    """Every conflict has a decision."""

    items: tuple[ImportResultItem, ...]


SequencerState = Active | Resolved


def start(result: ImportResult) -> SequencerState:
    """Build the initial state for *result*.

    Returns ``Resolved`` straight away when there is nothing to decide.
    """
    items = tuple(result.items)
    pending = tuple(
        index
        for index, item in enumerate(items)
        if item.action == ImportAction.CONFLICT
    )
    if not pending:
        return Resolved(items=items)
    return Active(items=items, current=pending[0], remaining=pending[1:])


def set_apply_to_all(state: Active, apply_to_all: bool) -> Active:
    """Toggle the bulk shortcut; affects the next choice only."""
    return replace(state, apply_to_all=apply_to_all)


def choose_update(state: SequencerState) -> SequencerState:
    """Decide the current conflict as ``onConflictUpdate``."""
    return _choose(state, ImportAction.ON_CONFLICT_UPDATE)


def choose_skip(state: SequencerState) -> SequencerState:
    """Decide the current conflict as ``onConflictSkip``."""
    return _choose(state, ImportAction.ON_CONFLICT_SKIP)


def to_result(state: Resolved, result: ImportResult) -> ImportResult:
    """Return a copy of *result* carrying the decided items."""
    return result.model_copy(update={"items": list(state.items)})


def _choose(state: SequencerState, action: ImportAction) -> SequencerState:
    if isinstance(state, Resolved):
        raise SequencerError("All conflicts have already been resolved")

    items = _with_action(state.items, state.current, action)

    if state.apply_to_all:
        items = reduce(
            lambda acc, index: _with_action(acc, index, action),
            state.remaining,
            items,
        )
        return Resolved(items=items)

    if not state.remaining:
        return Resolved(items=items)

    return Active(
        items=items,
        current=state.remaining[0],
        remaining=state.remaining[1:],
        apply_to_all=state.apply_to_all,
    )


def _with_action(
    items: tuple[ImportResultItem, ...], index: int, action: ImportAction
) -> tuple[ImportResultItem, ...]:
    decided = items[index].model_copy(update={"action": action})
    return items[:index] + (decided,) + items[index + 1 :]


class ConflictSequencer:
    """Mutable holder around the pure sequencer functions.

    Owned by a single caller; discard it once ``is_resolved`` is true.

    Args:
        result: The import result whose conflicts are to be decided.
    """

    def __init__(self, result: ImportResult) -> None:
        self._result = result
        self.state: SequencerState = start(result)
        self.total = len(result.conflicts)

    @property
    def is_resolved(self) -> bool:
        return isinstance(self.state, Resolved)

    @property
    def current(self) -> ImportResultItem | None:
        """The conflict awaiting a decision, or ``None`` once resolved."""
        if isinstance(self.state, Active):
            return self.state.current_item
        return None

    @property
    def position(self) -> int:
        """1-based position of the current conflict among all conflicts."""
        if isinstance(self.state, Active):
            return self.total - len(self.state.remaining)
        return self.total

    @property
    def apply_to_all(self) -> bool:
        return isinstance(self.state, Active) and self.state.apply_to_all

    def set_apply_to_all(self, apply_to_all: bool) -> None:
        if isinstance(self.state, Resolved):
            raise SequencerError("All conflicts have already been resolved")
        self.state = set_apply_to_all(self.state, apply_to_all)

    def choose_update(self) -> None:
        self.state = choose_update(self.state)

    def choose_skip(self) -> None:
        self.state = choose_skip(self.state)

    def result(self) -> ImportResult:
        """Return the decided result.

        Raises:
            SequencerError: If conflicts are still pending.
        """
        if not isinstance(self.state, Resolved):
            raise SequencerError("Conflicts are still pending")
        return to_result(self.state, self._result)


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class ConflictDecision(NamedTuple):
    """One answer from an interactive prompt.

    Attributes:
        update: ``True`` to update the existing item, ``False`` to skip.
        apply_to_all: Apply the same answer to every remaining conflict.
    """

    update: bool
    apply_to_all: bool = False


#: Prompt signature: ``(item, position, total) -> ConflictDecision``.
ConflictPrompt = Callable[[ImportResultItem, int, int], ConflictDecision]


class ConflictResolver(Protocol):
    """Protocol that all conflict resolvers must satisfy."""

    def resolve(self, result: ImportResult) -> ImportResult:
        """Return *result* with every conflict decided."""
        ...  # pragma: no cover


class InteractiveResolver:
    """Ask *prompt* for a decision on each conflict, in order."""

    def __init__(self, prompt: ConflictPrompt) -> None:
        self.prompt = prompt

    def resolve(self, result: ImportResult) -> ImportResult:
        sequencer = ConflictSequencer(result)
        while (item := sequencer.current) is not None:
            decision = self.prompt(item, sequencer.position, sequencer.total)
            sequencer.set_apply_to_all(decision.apply_to_all)
            if decision.update:
                sequencer.choose_update()
            else:
                sequencer.choose_skip()
            logger.debug(
                "Conflict %s: %s%s",
                item.slug,
                "update" if decision.update else "skip",
                " (all remaining)" if decision.apply_to_all else "",
            )
        return sequencer.result()


class DecisionMapResolver:
    """Decide each conflict from a slug-keyed map, falling back to a default.

    Args:
        decisions: Slug to ``True`` (update) or ``False`` (skip).
        default_update: Decision for slugs missing from *decisions*.
    """

    def __init__(
        self, decisions: Mapping[str, bool], default_update: bool = False
    ) -> None:
        self.decisions = dict(decisions)
        self.default_update = default_update

    def resolve(self, result: ImportResult) -> ImportResult:
        state = start(result)
        while isinstance(state, Active):
            update = self.decisions.get(
                state.current_item.slug, self.default_update
            )
            state = choose_update(state) if update else choose_skip(state)
        return to_result(state, result)


class UpdateAllResolver:
    """Update every conflicting item."""

    def resolve(self, result: ImportResult) -> ImportResult:
        return _resolve_all(result, update=True)


class SkipAllResolver:
    """Skip every conflicting record."""

    def resolve(self, result: ImportResult) -> ImportResult:
        return _resolve_all(result, update=False)


def _resolve_all(result: ImportResult, update: bool) -> ImportResult:
    state = start(result)
    if isinstance(state, Active):
        state = set_apply_to_all(state, True)
        state = choose_update(state) if update else choose_skip(state)
    if not isinstance(state, Resolved):
        raise SequencerError("Apply-to-all left conflicts undecided")
    return to_result(state, result)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

CONFLICT_STRATEGIES = ("interactive", "update-all", "skip-all")


def create_resolver(
    strategy: str, prompt: ConflictPrompt | None = None
) -> ConflictResolver:
    """Create a conflict resolver for the given strategy string.

    Args:
        strategy: One of ``"interactive"``, ``"update-all"``, ``"skip-all"``.
        prompt: Decision callback, required for ``"interactive"``.

    Returns:
        A ``ConflictResolver`` implementation instance.

    Raises:
        ValueError: If the strategy is not recognised, or ``"interactive"``
            is requested without a prompt.
    """
    match strategy:
        case "interactive":
            if prompt is None:
                raise ValueError(
                    "The 'interactive' conflict strategy needs a prompt"
                )
            return InteractiveResolver(prompt)
        case "update-all":
            return UpdateAllResolver()
        case "skip-all":
            return SkipAllResolver()
        case _:
            raise ValueError(
                f"Unknown conflict strategy: '{strategy}'. "
                f"Valid strategies: {sorted(CONFLICT_STRATEGIES)}"
            )
