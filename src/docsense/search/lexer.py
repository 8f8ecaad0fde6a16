"""Lexer used for both index building and query parsing.

The lexer keeps the composable tokenizer/filter layout: a tokenizer turns
raw text into raw tokens and filters normalize them. Indexing and querying
must share one instance of this pipeline, otherwise terms produced at
query time would never line up with the vocabulary.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, replace
import re
from typing import Protocol


# Letters and digits only; "_" is a word character for ``\w`` but a boundary here.
_ALNUM_RUN = re.compile(r"[^\W_]+", re.UNICODE)


@dataclass
class Token:
    """Represents a token emitted by the lexer."""

    text: str
    position: int
    start_char: int
    end_char: int


class Tokenizer(Protocol):
    """Protocol implemented by tokenizers."""

    def __call__(self, text: str) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class AlphanumericTokenizer:
    """Yield maximal runs of alphanumeric characters."""

    def __call__(self, text: str) -> Iterator[Token]:
        for position, match in enumerate(_ALNUM_RUN.finditer(text)):
            yield Token(
                text=match.group(0),
                position=position,
                start_char=match.start(),
                end_char=match.end(),
            )


class LowercaseFilter:
    """Filter that lowercases token text.

    Lowercasing can introduce combining marks (``"İ".lower()`` is ``"i"`` plus U+0307);
    those are dropped so every term stays a single alphanumeric run.
    """

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            lowered = token.text.lower()
            if lowered == token.text:
                yield token
                continue
            if not _ALNUM_RUN.fullmatch(lowered):
                lowered = "".join(_ALNUM_RUN.findall(lowered))
                if not lowered:
                    continue
            yield replace(token, text=lowered)


class TermStream:
    """Restartable, finite sequence of terms over a fixed text buffer.

    Every call to ``iter()`` re-runs the pipeline from the start of the
    buffer, so the same stream can be consumed more than once.
    """

    __slots__ = ("_lexer", "_text")

    def __init__(self, lexer: Lexer, text: str) -> None:
        self._lexer = lexer
        self._text = text

    def __iter__(self) -> Iterator[str]:
        for token in self._lexer.tokens(self._text):
            yield token.text

    def __repr__(self) -> str:
        preview = self._text if len(self._text) <= 40 else self._text[:37] + "..."
        return f"TermStream({preview!r})"


class Lexer:
    """Tokenizer + filter pipeline producing normalized terms."""

    def __init__(self, tokenizer: Tokenizer | None = None, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer or AlphanumericTokenizer()
        self.filters = list(filters) if filters is not None else [LowercaseFilter()]

    def tokens(self, text: str) -> Iterator[Token]:
        """Lazily yield normalized tokens with their offsets."""

        if not text:
            return iter(())
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        return iter(stream)

    def terms(self, text: str) -> TermStream:
        return TermStream(self, text)


DEFAULT_LEXER = Lexer()


def tokenize(text: str) -> list[str]:
    """Return the normalized term sequence for ``text``."""

    return list(DEFAULT_LEXER.terms(text))
