"""Selection state over a token sequence.

Responsibilities:
- Maintain the set of selected token indices with word/sentence toggle rules.
- Remove orphaned connector whitespace after every committed change.
- Derive contiguous selection groups used as translation cache keys.
- Notify subscribers with immutable snapshots after each committed change.
"""

from __future__ import annotations

from typing import Callable, Iterable, Sequence

from ..models.datatypes import GroupKey, SelectionMode
from ..telemetry.logger import EventLogger
from ..text.sentences import sentence_range
from ..text.tokenizer import check_index, is_whitespace

SelectionListener = Callable[[frozenset[int]], None]

_MERGE_RADIUS = 2


def derive_groups(selection: Iterable[int], tokens: Sequence[str]) -> tuple[GroupKey, ...]:
    """Return maximal contiguous runs of selected indices, bridged only by whitespace."""

    ordered = sorted(selection)
    if not ordered:
        return ()

    groups: list[GroupKey] = []
    run_start = ordered[0]
    previous = ordered[0]
    for current in ordered[1:]:
        bridged = all(is_whitespace(tokens[k]) for k in range(previous + 1, current))
        if not bridged:
            groups.append(GroupKey(run_start, previous))
            run_start = current
        previous = current
    groups.append(GroupKey(run_start, previous))
    return tuple(groups)


class SelectionEngine:
    """Own the selected-index set for one token sequence."""

    def __init__(
        self,
        tokens: Sequence[str] = (),
        mode: SelectionMode = SelectionMode.WORD,
        logger: EventLogger | None = None,
    ) -> None:
        self._tokens: tuple[str, ...] = tuple(tokens)
        self._selection: frozenset[int] = frozenset()
        self.mode = mode
        self._listeners: list[SelectionListener] = []
        self._groups_memo: tuple[frozenset[int], tuple[str, ...], tuple[GroupKey, ...]] | None = None
        self._logger = logger or EventLogger("selection")

    @property
    def tokens(self) -> tuple[str, ...]:
        return self._tokens

    @property
    def selected(self) -> frozenset[int]:
        """Return an immutable snapshot of the current selection."""

        return self._selection

    def is_selected(self, index: int) -> bool:
        return index in self._selection

    def subscribe(self, listener: SelectionListener) -> Callable[[], None]:
        """Register a change listener and return a callable that removes it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def reset(self, tokens: Sequence[str]) -> None:
        """Adopt a new token sequence and drop every selected index."""

        self._tokens = tuple(tokens)
        self._groups_memo = None
        self._commit(frozenset(), force_notify=True)

    def toggle(self, index: int, mode: SelectionMode | None = None) -> None:
        """Toggle a token using word or sentence granularity.

        Raises:
            TokenIndexError: If `index` is outside the token sequence.
        """

        check_index(index, self._tokens)
        active_mode = mode if mode is not None else self.mode
        selection = set(self._selection)

        if active_mode is SelectionMode.SENTENCE:
            bounds = sentence_range(index, self._tokens)
            if bounds is None:
                return
            span = range(bounds[0], bounds[1] + 1)
            if index in selection:
                selection.difference_update(span)
            else:
                selection.update(span)
        elif index in selection:
            selection.discard(index)
        else:
            selection.add(index)

        self._commit(frozenset(selection))

    def select_range(self, start: int, end: int) -> None:
        """Select every index in the inclusive span `start..end`."""

        check_index(start, self._tokens)
        check_index(end, self._tokens)
        self._commit(self._selection | frozenset(range(start, end + 1)))

    def deselect(self, indices: Iterable[int]) -> None:
        """Remove the given indices from the selection."""

        self._commit(self._selection - frozenset(indices))

    def clear(self) -> None:
        """Empty the selection."""

        self._commit(frozenset())

    def groups(self) -> tuple[GroupKey, ...]:
        """Return contiguous selection groups, memoized on selection and tokens."""

        memo = self._groups_memo
        if memo is not None and memo[0] is self._selection and memo[1] is self._tokens:
            return memo[2]
        groups = derive_groups(self._selection, self._tokens)
        self._groups_memo = (self._selection, self._tokens, groups)
        return groups

    def group_for(self, index: int) -> GroupKey | None:
        """Return the group containing `index`, if it is selected."""

        if index not in self._selection:
            return None
        for key in self.groups():
            if key.contains(index):
                return key
        return None

    def members(self, key: GroupKey) -> frozenset[int]:
        """Return the selected indices covered by a group key."""

        return frozenset(i for i in self._selection if key.contains(i))

    def merge_adjacent(self, index: int) -> GroupKey | None:
        """Merge an unselected token into neighbouring groups within two tokens.

        The whole span from the leftmost to the rightmost merged index is selected.

        Returns:
            The resulting group key, or `None` when no group was close enough.
        """

        check_index(index, self._tokens)
        if index in self._selection:
            return None

        neighbours = [
            key
            for key in self.groups()
            if 0 < index - key.end <= _MERGE_RADIUS or 0 < key.start - index <= _MERGE_RADIUS
        ]
        if not neighbours:
            return None

        start = min([index, *(key.start for key in neighbours)])
        end = max([index, *(key.end for key in neighbours)])
        self._commit(self._selection | frozenset(range(start, end + 1)))
        self._logger.debug("merge", group=f"{start}-{end}")
        return self.group_for(index)

    def _without_orphans(self, selection: frozenset[int]) -> frozenset[int]:
        """Drop selected whitespace that has no selected neighbour."""

        kept = set(selection)
        changed = True
        while changed:
            orphans = {
                index
                for index in kept
                if is_whitespace(self._tokens[index])
                and (index - 1) not in kept
                and (index + 1) not in kept
            }
            changed = bool(orphans)
            kept -= orphans
        return frozenset(kept)

    def _commit(self, selection: frozenset[int], force_notify: bool = False) -> None:
        selection = self._without_orphans(selection)
        if selection == self._selection and not force_notify:
            return
        self._selection = selection
        for listener in list(self._listeners):
            listener(selection)
