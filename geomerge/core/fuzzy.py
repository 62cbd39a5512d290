"""Name similarity rule used to decide if a candidate is the same entity."""
from typing import Iterable, Optional
from rapidfuzz import fuzz
from geomerge.core.config import NAME_MATCH_THRESHOLD
from geomerge.core.normalization import normalize_text


def name_similarity(name1: str, name2: str) -> float:
    """
    Similarity of two names between 0 and 1.
    
    Token sort ratio so that word order does not matter ("Saint Denis
    La Plaine" / "La Plaine Saint Denis").
    """
    normalized1 = normalize_text(name1)
    normalized2 = normalize_text(name2)
    if not normalized1 or not normalized2:
        return 0.0
    if normalized1 == normalized2:
        return 1.0
    return fuzz.token_sort_ratio(normalized1, normalized2) / 100.0


def is_same_name(name1: Optional[str], name2: Optional[str], threshold: float = NAME_MATCH_THRESHOLD) -> bool:
    """
    Check if two names designate the same place.
    
    Args:
        name1: First name
        name2: Second name
        threshold: Minimum similarity score (0-1)
        
    Returns:
        True if names are similar enough
    """
    if name1 is None or name2 is None:
        return False
    return name_similarity(name1, name2) >= threshold


def is_same_alternate_names(name: Optional[str], alternate_names: Optional[Iterable[str]], threshold: float = NAME_MATCH_THRESHOLD) -> bool:
    """Check if one of the alternate names is the same as the name."""
    if name is None or not alternate_names:
        return False
    return any(is_same_name(name, alternate, threshold) for alternate in alternate_names)
