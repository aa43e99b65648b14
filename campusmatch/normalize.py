from typing import FrozenSet, Iterable, Optional


def normalize_text(s: str) -> str:
    return " ".join(s.strip().split())


def normalize_optional(s: Optional[str]) -> Optional[str]:
    """Collapse whitespace; blank strings become None."""
    if s is None:
        return None
    text = normalize_text(s)
    return text or None


def normalize_tag(tag: str) -> str:
    return normalize_text(tag).lower()


def normalize_tags(tags: Optional[Iterable[str]]) -> FrozenSet[str]:
    if not tags:
        return frozenset()
    return frozenset(t for t in (normalize_tag(tag) for tag in tags) if t)


def compute_pair_key(user_a: str, user_b: str) -> str:
    """Order-independent identifier for an unordered user pair."""
    first, second = sorted((user_a, user_b))
    return f"{first}|{second}"


def ordered_pair(user_a: str, user_b: str):
    first, second = sorted((user_a, user_b))
    return first, second
