# remindbot - Discord Reminder Bot
# Copyright (c) 2025-2026 Slash Daemon slashdaemon@protonmail.com
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, version 3 of the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#
# Commercial licensing: [slashdaemon@protonmail.com]

"""
Part-of-Speech Tagger

Thin wrapper around NLTK's averaged perceptron tagger. Tags follow the Penn
Treebank tag set (PRP, VBP, VBZ, ...).
"""

import logging
import re
from abc import ABC, abstractmethod

import nltk
from nltk.tokenize import RegexpTokenizer

logger = logging.getLogger("remindbot.reminders.tagger")

TaggedToken = tuple[str, str]

# Words keep their contractions ("I'm", "don't") so they can be rewritten whole
_TOKENIZER = RegexpTokenizer(r"[\w@][\w'@-]*|[^\w\s]")

_THIRD_PERSON_IRREGULAR = {
    "am": "is",
    "are": "is",
    "'m": "'s",
    "'re": "'s",
    "have": "has",
    "haven't": "hasn't",
    "do": "does",
    "don't": "doesn't",
    "go": "goes",
}

_SIBILANT_ENDING = re.compile(r"(?:s|sh|ch|x|z|o)$")
_CONSONANT_Y_ENDING = re.compile(r"[^aeiou]y$")


def _match_case(original: str, replacement: str) -> str:
    if original.isupper() and len(original) > 1:
        return replacement.upper()
    if original[:1].isupper():
        return replacement[:1].upper() + replacement[1:]
    return replacement


def verb_to_third_person(tag: str, verb: str) -> str:
    """
    Conjugate a present-tense verb for a third-person singular subject.

    Args:
        tag: Penn Treebank tag of the verb
        verb: The verb as written

    Returns:
        The conjugated verb, or ``verb`` unchanged if it is not a
        base/non-third-person present form
    """
    if not verb:
        return verb

    lower = verb.lower()
    if lower in _THIRD_PERSON_IRREGULAR:
        return _match_case(verb, _THIRD_PERSON_IRREGULAR[lower])

    if tag not in ("VB", "VBP"):
        return verb
    if _SIBILANT_ENDING.search(lower):
        return verb + "es"
    if _CONSONANT_Y_ENDING.search(lower):
        return verb[:-1] + "ies"
    return verb + "s"


class PartOfSpeechTagger(ABC):
    """Labels each token of a message with its part of speech."""

    @abstractmethod
    def tag(self, text: str) -> list[TaggedToken]:
        """Return ``(token, tag)`` pairs for ``text`` in order."""

    def verb_to_third_person(self, tag: str, verb: str) -> str:
        return verb_to_third_person(tag, verb)


class NltkTagger(PartOfSpeechTagger):
    """Tagger backed by ``nltk.pos_tag``. Model data is fetched on first use."""

    RESOURCES = ("averaged_perceptron_tagger_eng", "averaged_perceptron_tagger")

    def __init__(self, download: bool = True):
        self.download = download
        self._ready = False

    def _ensure_model(self) -> None:
        if self._ready:
            return
        for resource in self.RESOURCES:
            try:
                nltk.data.find(f"taggers/{resource}")
                self._ready = True
                return
            except LookupError:
                continue

        if not self.download:
            raise LookupError("NLTK tagger model is not installed")

        logger.info("Downloading NLTK tagger model")
        for resource in self.RESOURCES:
            if nltk.download(resource, quiet=True):
                self._ready = True
                return
        raise LookupError("NLTK tagger model could not be downloaded")

    def tokenize(self, text: str) -> list[str]:
        return _TOKENIZER.tokenize(text)

    def tag(self, text: str) -> list[TaggedToken]:
        tokens = self.tokenize(text)
        if not tokens:
            return []
        self._ensure_model()
        return [(token, tag) for token, tag in nltk.pos_tag(tokens)]
