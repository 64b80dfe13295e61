"""Keyword vocabularies used to interpret image labels."""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable


@dataclass(frozen=True)
class LabelVocabulary:
    """A set of lowercase terms with a label-matching predicate.

    A label matches when any term occurs in its lowercased text, so
    "Human face" matches the term "face" and "Eyelashes" matches "eye".

    Example:
        >>> PERSON_VOCABULARY.matches("Selfie")
        True
        >>> DOCUMENT_VOCABULARY.matches("Sky")
        False
    """

    name: str
    terms: FrozenSet[str]

    @classmethod
    def of(cls, name: str, terms: Iterable[str]) -> LabelVocabulary:
        """Build a vocabulary, normalizing terms to lowercase."""
        return cls(name=name, terms=frozenset(t.strip().lower() for t in terms if t.strip()))

    def matches(self, label_text: str) -> bool:
        """True if any term occurs in ``label_text`` (case-insensitive)."""
        text = label_text.lower()
        return any(term in text for term in self.terms)


PERSON_VOCABULARY = LabelVocabulary.of(
    "person",
    [
        "person",
        "face",
        "human",
        "people",
        "man",
        "woman",
        "child",
        "selfie",
        "portrait",
        # Body parts
        "ear",
        "eye",
        "nose",
        "mouth",
        "hair",
        "hand",
        "finger",
        "arm",
        "leg",
        "foot",
        "head",
        "neck",
        "skin",
        "flesh",
        "eyelash",
        "eyebrow",
        "lip",
        "cheek",
        "forehead",
    ],
)

DOCUMENT_VOCABULARY = LabelVocabulary.of(
    "document",
    [
        "text",
        "document",
        "paper",
        "receipt",
        "card",
        "book",
        "page",
        "writing",
        "letter",
        "note",
        "form",
        "invoice",
        "contract",
        "magazine",
        "newspaper",
    ],
)
