"""Query tokenization into an immutable token tuple.

Shorthand such as ``p:1,2``, ``s:open``, ``d:+3d``, ``#tag`` or ``folder:Work``
is kept as a single token. Everything else is split on whitespace and
punctuation, and unspaced CJK runs are segmented against a known lexicon by
greedy longest match; characters outside the lexicon stay together as one
token.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple

from tasksift.search.vocabulary import (
    CJK_REGEX,
    GENERIC_QUERY_WORDS,
    INTERNAL_STOP_WORDS,
    PRIORITY_EMOJI_PATTERN,
    is_cjk,
)

SHORTHAND_KEYS = (
    "p", "priority", "s", "status", "d", "due", "folder", "directory", "dir",
    "before", "after", "tag", "tags",
)
SHORTHAND_PATTERN = re.compile(
    r"^(?:%s):" % "|".join(sorted(SHORTHAND_KEYS, key=len, reverse=True)),
    re.IGNORECASE,
)
OPERATOR_PATTERN = re.compile(r"(&&|\|\||[&|!])")
PUNCTUATION_PATTERN = re.compile(r"[?,.;:()\[\]{}\"“”‘’，。？！；：、（）]+")
TRAILING_PUNCTUATION = "?,.;!\"'“”‘’，。？！；"
CJK_RUN_PATTERN = re.compile(
    r"(%s+)" % CJK_REGEX.pattern
)

OPERATOR_TOKENS = frozenset({"&", "|", "!", "&&", "||"})


@lru_cache(maxsize=32)
def _lexicon_with_vocabulary(lexicon: Tuple[str, ...]) -> Tuple[str, ...]:
    words = set(lexicon)
    words.update(w for w in GENERIC_QUERY_WORDS if is_cjk(w))
    words.update(w for w in INTERNAL_STOP_WORDS if is_cjk(w))
    return tuple(sorted(words, key=len, reverse=True))


def segment_cjk(run: str, lexicon: Sequence[str]) -> List[str]:
    """Split an unspaced CJK run on lexicon words, longest match first."""
    pieces: List[str] = []
    buffer = ""
    index = 0
    while index < len(run):
        match: Optional[str] = None
        for word in lexicon:
            if word and run.startswith(word, index):
                match = word
                break
        if match is None:
            buffer += run[index]
            index += 1
            continue
        if buffer:
            pieces.append(buffer)
            buffer = ""
        pieces.append(match)
        index += len(match)
    if buffer:
        pieces.append(buffer)
    return pieces


def _split_plain(chunk: str, lexicon: Sequence[str]) -> List[str]:
    tokens: List[str] = []
    for piece in OPERATOR_PATTERN.split(chunk):
        if not piece:
            continue
        if piece in OPERATOR_TOKENS:
            tokens.append(piece)
            continue
        for word in PUNCTUATION_PATTERN.split(piece):
            word = word.strip("'!")
            if not word:
                continue
            for run in CJK_RUN_PATTERN.split(word):
                if not run:
                    continue
                if is_cjk(run):
                    tokens.extend(segment_cjk(run, lexicon))
                else:
                    tokens.append(run)
    return tokens


def tokenize(query: str, lexicon: Sequence[str] = ()) -> Tuple[str, ...]:
    """Tokenize a raw query, keeping shorthand syntax intact."""
    full_lexicon = _lexicon_with_vocabulary(tuple(lexicon))
    tokens: List[str] = []
    # Priority emoji stand alone even when written against a word.
    query = PRIORITY_EMOJI_PATTERN.sub(r" \1 ", query)
    for chunk in query.split():
        if SHORTHAND_PATTERN.match(chunk) or chunk.startswith("#"):
            cleaned = chunk.rstrip(TRAILING_PUNCTUATION)
            if cleaned:
                tokens.append(cleaned)
            continue
        tokens.extend(_split_plain(chunk, full_lexicon))
    return tuple(tokens)


def phrase_tokens(phrase: str, lexicon: Sequence[str] = ()) -> Tuple[str, ...]:
    """Tokenize a vocabulary phrase the same way queries are tokenized."""
    return tuple(token.lower() for token in tokenize(phrase, lexicon))


def find_phrase(
    tokens: Sequence[str], phrase: Sequence[str], start: int = 0
) -> Optional[int]:
    """Index of the first case-insensitive occurrence of ``phrase`` in ``tokens``."""
    size = len(phrase)
    if size == 0:
        return None
    for index in range(start, len(tokens) - size + 1):
        if all(tokens[index + offset].lower() == phrase[offset] for offset in range(size)):
            return index
    return None


def remove_span(tokens: Tuple[str, ...], start: int, length: int) -> Tuple[str, ...]:
    return tokens[:start] + tokens[start + length:]
