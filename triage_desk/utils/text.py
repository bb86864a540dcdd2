"""
Text utilities shared by the casebook, similarity retrieval and LLM parsing
"""
import json
import re
import string
from typing import Any, Dict, Optional, Set

MIN_TOKEN_LENGTH = 4

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def _normalize_word(word: str) -> str:
    return word.strip(string.punctuation).lower()


def tokenize(text: Optional[str]) -> Set[str]:
    """
    Split free text into the set of lowercase words longer than three characters

    Args:
        text: Ticket subject/body text

    Returns:
        Set of normalized tokens
    """
    if not text:
        return set()

    tokens = set()
    for word in text.split():
        normalized = _normalize_word(word)
        if len(normalized) >= MIN_TOKEN_LENGTH:
            tokens.add(normalized)
    return tokens


def subject_keywords(subject: Optional[str]) -> Set[str]:
    """
    Casebook keywords for a ticket subject.

    The subject is split on whitespace, each token is lowercased and stripped
    of leading/trailing punctuation, and tokens shorter than four characters
    after that normalization are discarded ("ok!!" -> "ok" -> dropped). The
    same normalization is applied to ticket text, so keywords compare equal
    to ticket tokens.
    """
    return tokenize(subject)


def sanitize_input(text: str, max_length: int = 10000) -> str:
    """
    Sanitize text before it is embedded into a prompt

    Args:
        text: Input text to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized text
    """
    text = (text or "").replace('\x00', '')

    if len(text) > max_length:
        text = text[:max_length]

    return text.strip()


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Pull the first JSON object out of an LLM response.

    Models frequently wrap JSON in markdown fences or prose, so the outermost
    brace-delimited span is parsed.

    Returns:
        Parsed dict, or None if no valid JSON object is present
    """
    if not text:
        return None

    match = _JSON_OBJECT.search(text)
    if not match:
        return None

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None

    return parsed if isinstance(parsed, dict) else None
