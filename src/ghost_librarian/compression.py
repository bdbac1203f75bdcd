"""Extractive compression: filler-phrase and stopword removal, token estimates.

Token counts everywhere in the library are the ``words * 1.3`` heuristic from
``estimate_tokens``; no real tokenizer is involved.
"""

from __future__ import annotations

import math
import re

TOKENS_PER_WORD = 1.3

NEGATIONS = frozenset(
    {
        "not",
        "no",
        "nor",
        "never",
        "neither",
        "nobody",
        "nothing",
        "nowhere",
        "none",
        "cannot",
        "can't",
        "don't",
        "doesn't",
        "didn't",
        "won't",
        "wouldn't",
        "shouldn't",
        "couldn't",
        "isn't",
        "aren't",
        "wasn't",
        "weren't",
        "hasn't",
        "haven't",
        "hadn't",
    }
)

STOPWORDS = frozenset(
    {
        # articles and auxiliaries
        "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "shall",
        "should", "may", "might", "must", "can", "could", "am",
        # pronouns
        "i", "me", "my", "myself", "we", "our", "ours", "ourselves", "you",
        "your", "yours", "yourself", "yourselves", "he", "him", "his",
        "himself", "she", "her", "hers", "herself", "it", "its", "itself",
        "they", "them", "their", "theirs", "themselves", "what", "which",
        "who", "whom", "this", "that", "these", "those",
        # prepositions and conjunctions
        "of", "in", "for", "on", "with", "at", "by", "from", "to", "into",
        "through", "during", "before", "after", "above", "below", "between",
        "and", "but", "or", "so", "if", "then", "because", "as", "until",
        "while", "about", "against",
        # determiners and adverbs
        "each", "few", "more", "most", "other", "some", "such", "only", "own",
        "same", "than", "too", "very", "just", "also", "both", "how", "when",
        "where", "why", "all", "any", "here", "there", "up", "out", "over",
        "under", "again", "further", "once",
    }
)

FILLER_PHRASES = (
    "it is important to note that",
    "it should be noted that",
    "it is worth mentioning that",
    "as a matter of fact",
    "in order to",
    "due to the fact that",
    "for the purpose of",
    "in the event that",
    "at the end of the day",
    "as previously mentioned",
    "it goes without saying",
    "needless to say",
    "in terms of",
    "with regard to",
    "with respect to",
    "on the other hand",
    "in addition to",
    "as well as",
    "in light of",
    "as a result of",
)

_FILLER_RES = tuple(
    re.compile(re.escape(phrase), re.IGNORECASE) for phrase in FILLER_PHRASES
)
_MULTI_SPACE_RE = re.compile(r"  +")


def trim_token(token: str, keep: str = "") -> str:
    """Strip leading/trailing characters that are not alphanumeric or in ``keep``."""
    start = 0
    end = len(token)
    while start < end and not (token[start].isalnum() or token[start] in keep):
        start += 1
    while end > start and not (token[end - 1].isalnum() or token[end - 1] in keep):
        end -= 1
    return token[start:end]


def remove_filler_phrases(text: str) -> str:
    result = text
    for pattern in _FILLER_RES:
        result = pattern.sub("", result)
    return _MULTI_SPACE_RE.sub(" ", result).strip()


def remove_stopwords(text: str) -> str:
    """Drop catalog stopwords; negations are always kept."""
    kept: list[str] = []
    for word in text.split():
        clean = trim_token(word.lower(), keep="'")
        if clean in NEGATIONS or clean not in STOPWORDS:
            kept.append(word)
    return " ".join(kept)


def compress_text(text: str) -> str:
    return remove_stopwords(remove_filler_phrases(text))


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text.split()) * TOKENS_PER_WORD)


def compression_ratio(original: str, compressed: str) -> float:
    original_tokens = estimate_tokens(original)
    if original_tokens == 0:
        return 0.0
    return 1.0 - estimate_tokens(compressed) / original_tokens


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    max_words = max(0, math.floor(max_tokens / TOKENS_PER_WORD))
    return " ".join(text.split()[:max_words])
