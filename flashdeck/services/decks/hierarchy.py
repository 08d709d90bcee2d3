"""
Deck Hierarchy

Decks form a forest. Each deck stores its parent id and a materialized
path (ancestor names joined by "::"), so subtree queries are prefix matches
in the store and plain walks here.

Components:
- build_tree(): Nest a flat deck list into DeckNode trees
- DeckHierarchy: In-memory arena of one owner's decks, supporting add,
  rename, reparent and remove with cascading path updates
- summarize(): Aggregate card counts for a set of cards

Ordering:
    Siblings and roots are always ordered by (name, id), so the same set of
    decks yields the same tree regardless of input order.
"""

import logging
from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional

from flashdeck.enums.learning import CardState
from flashdeck.middleware.error_handling import CycleDetected, InvalidDeckName, NotFoundError
from flashdeck.models.domain import DECK_PATH_SEPARATOR, Card, Deck, DeckNode, DeckStats, new_id

logger = logging.getLogger(__name__)


# ===========================================
# Path Helpers
# ===========================================


def split_path(path: str) -> list[str]:
    """Split "A::B::C" into ["A", "B", "C"], dropping empty segments."""
    return [part.strip() for part in path.split(DECK_PATH_SEPARATOR) if part.strip()]


def join_path(parts: Iterable[str]) -> str:
    return DECK_PATH_SEPARATOR.join(parts)


def validate_name(name: str) -> str:
    """
    Check a single deck name (one path segment).

    Returns:
        The name with surrounding whitespace removed

    Raises:
        InvalidDeckName: If the name is empty or contains "::"
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidDeckName("Deck name must not be empty")
    if DECK_PATH_SEPARATOR in cleaned:
        raise InvalidDeckName(
            f"Deck name {cleaned!r} must not contain {DECK_PATH_SEPARATOR!r}"
        )
    return cleaned


def _sort_key(deck: Deck) -> tuple[str, str]:
    return (deck.name, deck.id)


def _on_cycle(deck_id: str, nodes: dict[str, DeckNode]) -> bool:
    current = nodes[deck_id].deck.parent_id
    for _ in range(len(nodes)):
        if current is None or current not in nodes:
            return False
        if current == deck_id:
            return True
        current = nodes[current].deck.parent_id
    return False


# ===========================================
# Tree Building
# ===========================================


def build_tree(decks: Iterable[Deck]) -> list[DeckNode]:
    """
    Nest a flat list of decks into trees.

    A deck whose parent is not in the input becomes a root (its parent may
    belong to another owner or have been deleted concurrently). If the input
    contains a parent cycle, the smallest deck of the cycle by (name, id) is
    promoted to a root so every deck still appears exactly once.

    Args:
        decks: Decks in any order

    Returns:
        Root nodes ordered by (name, id), children likewise
    """
    nodes: dict[str, DeckNode] = {deck.id: DeckNode(deck) for deck in decks}
    roots: list[DeckNode] = []

    for node in nodes.values():
        parent_id = node.deck.parent_id
        if parent_id is None:
            roots.append(node)
        elif parent_id not in nodes:
            logger.debug(
                f"Deck {node.deck.id} ({node.deck.deck_path}) has unknown parent "
                f"{parent_id}; treating it as a root"
            )
            roots.append(node)
        elif parent_id != node.deck.id:
            nodes[parent_id].children.append(node)
        # a self-parented deck is picked up by the cycle pass below

    reached: set[str] = set()
    for root in roots:
        reached.update(n.deck.id for n in root.walk())

    # Whatever is still unreached sits on, or hangs below, a parent cycle
    while len(reached) < len(nodes):
        pending = {deck_id for deck_id in nodes if deck_id not in reached}
        on_cycle = [nodes[deck_id] for deck_id in pending if _on_cycle(deck_id, nodes)]
        promoted = min(on_cycle, key=lambda n: _sort_key(n.deck))
        logger.warning(
            f"Deck parent cycle detected; promoting {promoted.deck.id} "
            f"({promoted.deck.name}) to a root"
        )
        parent = nodes[promoted.deck.parent_id]
        parent.children = [c for c in parent.children if c is not promoted]
        roots.append(promoted)
        reached.update(n.deck.id for n in promoted.walk())

    for node in nodes.values():
        node.children.sort(key=lambda n: _sort_key(n.deck))
    roots.sort(key=lambda n: _sort_key(n.deck))
    return roots


# ===========================================
# Stats
# ===========================================


def summarize(cards: Iterable[Card], now: datetime) -> DeckStats:
    """
    Count cards by state.

    ``due`` counts cards that have been studied at least once and whose due
    time has passed; new cards are reported separately.
    """
    total = new = learning = review = due = 0
    for card in cards:
        total += 1
        if card.state == CardState.NEW:
            new += 1
            continue
        if card.state in (CardState.LEARNING, CardState.RELEARNING):
            learning += 1
        else:
            review += 1
        if card.due <= now:
            due += 1

    progress = round(100 * (total - new - due) / total) if total else 0
    return DeckStats(
        total=total,
        new=new,
        learning=learning,
        review=review,
        due=due,
        progress=progress,
    )


# ===========================================
# Arena
# ===========================================


class DeckHierarchy:
    """
    Arena of decks addressed by id.

    Each deck keeps its parent id; a parent → children index is rebuilt
    whenever the structure changes. All mutations keep every deck_path equal
    to its parent's path plus its own name.

    Usage:
        hierarchy = DeckHierarchy(decks)
        changed = hierarchy.rename(deck_id, "Biology")
        removed_ids = hierarchy.remove(other_id)
    """

    def __init__(self, decks: Iterable[Deck] = ()):
        self._decks: dict[str, Deck] = {deck.id: deck for deck in decks}
        self._children: dict[Optional[str], list[str]] = {}
        self._reindex()

    def _reindex(self) -> None:
        children: dict[Optional[str], list[str]] = {}
        for deck in self._decks.values():
            parent = deck.parent_id if deck.parent_id in self._decks else None
            if parent == deck.id:
                parent = None
            children.setdefault(parent, []).append(deck.id)
        for ids in children.values():
            ids.sort(key=lambda deck_id: _sort_key(self._decks[deck_id]))
        self._children = children

    def __len__(self) -> int:
        return len(self._decks)

    def __contains__(self, deck_id: str) -> bool:
        return deck_id in self._decks

    def get(self, deck_id: str) -> Deck:
        try:
            return self._decks[deck_id]
        except KeyError:
            raise NotFoundError(f"Deck {deck_id} not found")

    def decks(self) -> list[Deck]:
        return list(self._decks.values())

    def roots(self) -> list[Deck]:
        return [self._decks[deck_id] for deck_id in self._children.get(None, [])]

    def children(self, deck_id: str) -> list[Deck]:
        return [self._decks[child] for child in self._children.get(deck_id, [])]

    def tree(self) -> list[DeckNode]:
        return build_tree(self._decks.values())

    def find_by_path(self, path: str) -> Optional[Deck]:
        """Look up a deck by its full "::" path."""
        for deck in self._decks.values():
            if deck.deck_path == path:
                return deck
        return None

    def path_of(self, deck_id: str) -> str:
        """Compute the path of a deck by walking its parent chain."""
        names: list[str] = []
        seen: set[str] = set()
        current: Optional[Deck] = self.get(deck_id)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            names.append(current.name)
            current = self._decks.get(current.parent_id) if current.parent_id else None
        return join_path(reversed(names))

    def subtree_ids(self, deck_id: str) -> list[str]:
        """The deck and all of its descendants, breadth first."""
        self.get(deck_id)
        ordered: list[str] = []
        seen: set[str] = set()
        queue = deque([deck_id])
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            ordered.append(current)
            queue.extend(self._children.get(current, []))
        return ordered

    def descendants(self, deck_id: str) -> list[Deck]:
        return [self._decks[d] for d in self.subtree_ids(deck_id)[1:]]

    def add(
        self,
        name: str,
        parent_id: Optional[str] = None,
        *,
        owner: str,
        deck_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Deck:
        """
        Create a deck under ``parent_id`` (or as a root).

        Raises:
            InvalidDeckName: If the name is invalid or a sibling already uses it
            NotFoundError: If the parent doesn't exist
        """
        name = validate_name(name)
        parent_path = None
        if parent_id is not None:
            parent_path = self.get(parent_id).deck_path
        self._check_sibling_name(parent_id, name)

        deck = Deck(
            id=deck_id or new_id(),
            owner=owner,
            name=name,
            deck_path=join_path([parent_path, name]) if parent_path else name,
            parent_id=parent_id,
            description=description,
        )
        self._decks[deck.id] = deck
        self._reindex()
        return deck

    def ensure_path(
        self, path: str, *, owner: str, description: Optional[str] = None
    ) -> tuple[Deck, list[Deck]]:
        """
        Return the deck at ``path``, creating it and any missing ancestors.

        ``description`` only applies to the last segment, and only when that
        deck is created here.

        Returns:
            Tuple of the deck at ``path`` and the list of newly created decks
        """
        parts = split_path(path)
        if not parts:
            raise InvalidDeckName(f"Deck path {path!r} has no names")

        created: list[Deck] = []
        parent: Optional[Deck] = None
        for depth in range(1, len(parts) + 1):
            prefix = join_path(parts[:depth])
            existing = self.find_by_path(prefix)
            if existing is None:
                existing = self.add(
                    parts[depth - 1],
                    parent.id if parent else None,
                    owner=owner,
                    description=description if depth == len(parts) else None,
                )
                created.append(existing)
            parent = existing
        return parent, created

    def rename(self, deck_id: str, name: str) -> list[Deck]:
        """
        Rename a deck and rewrite the paths of its subtree.

        Returns:
            Every deck whose name or path changed (the deck first)
        """
        deck = self.get(deck_id)
        name = validate_name(name)
        if name == deck.name:
            return []
        self._check_sibling_name(deck.parent_id, name)
        self._decks[deck_id] = replace(deck, name=name)
        self._reindex()
        return self._recompute_paths(deck_id)

    def reparent(self, deck_id: str, new_parent_id: Optional[str]) -> list[Deck]:
        """
        Move a deck (with its subtree) under another deck, or to the root.

        Raises:
            CycleDetected: If new_parent_id is the deck or one of its descendants
            NotFoundError: If either deck doesn't exist

        Returns:
            Every deck whose path changed (the deck first)
        """
        deck = self.get(deck_id)
        if new_parent_id is not None:
            self.get(new_parent_id)
            if new_parent_id in self.subtree_ids(deck_id):
                raise CycleDetected(
                    f"Cannot move deck {deck.deck_path!r} under itself or its descendant",
                    details={"deck_id": deck_id, "parent_id": new_parent_id},
                )
        if new_parent_id == deck.parent_id:
            return []
        self._check_sibling_name(new_parent_id, deck.name)

        self._decks[deck_id] = replace(deck, parent_id=new_parent_id)
        self._reindex()
        return self._recompute_paths(deck_id)

    def remove(self, deck_id: str) -> list[str]:
        """
        Remove a deck and all of its descendants.

        Returns:
            Ids of every removed deck, the deck itself first
        """
        removed = self.subtree_ids(deck_id)
        for removed_id in removed:
            del self._decks[removed_id]
        self._reindex()
        return removed

    def compute_stats(self, deck_id: str, cards: Iterable[Card], now: datetime) -> DeckStats:
        """Aggregate the cards that belong to the deck's whole subtree."""
        subtree = set(self.subtree_ids(deck_id))
        return summarize((card for card in cards if card.deck_id in subtree), now)

    def _check_sibling_name(self, parent_id: Optional[str], name: str) -> None:
        for sibling_id in self._children.get(parent_id, []):
            if self._decks[sibling_id].name == name:
                raise InvalidDeckName(f"A deck named {name!r} already exists here")

    def _recompute_paths(self, deck_id: str) -> list[Deck]:
        changed: list[Deck] = []
        for current_id in self.subtree_ids(deck_id):
            deck = self._decks[current_id]
            parent = self._decks.get(deck.parent_id) if deck.parent_id else None
            path = join_path([parent.deck_path, deck.name]) if parent else deck.name
            updated = replace(deck, deck_path=path)
            self._decks[current_id] = updated
            changed.append(updated)
        return changed
