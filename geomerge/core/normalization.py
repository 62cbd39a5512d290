"""Text normalization utilities for place name matching."""
import re
import unicodedata


def normalize_text(text: str) -> str:
    """
    Normalize text for matching: lowercase, strip punctuation, collapse whitespace, unicode normalize.
    
    Args:
        text: Input text string
        
    Returns:
        Normalized text string
    """
    if not text:
        return ""
    
    # Unicode normalization, accents removed
    text = unicodedata.normalize("NFD", text)
    text = "".join(c for c in text if unicodedata.category(c) != "Mn")
    
    # German sharp s has no decomposition
    text = text.lower().replace("ß", "ss")
    
    # Remove punctuation
    text = re.sub(r'[^\w\s]', ' ', text)
    text = text.replace("_", " ")
    
    # Collapse whitespace
    text = re.sub(r'\s+', ' ', text)
    
    return text.strip()


def contains_digit(text: str) -> bool:
    """Return True if the text holds at least one digit."""
    if not text:
        return False
    return any(c.isdigit() for c in text)


def is_empty(text) -> bool:
    return text is None or str(text).strip() == ""
