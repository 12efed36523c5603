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
Pronoun and Verb Rewriter

Rewrites the grammatical person of a reminder so that it reads naturally when
the bot repeats it later:

    remind me to grab a beer        -> grab a beer
    remind me I am late             -> you are late
    remind @bob I am late (by amy)  -> amy is late
    remind everyone that my PR ...  -> amy's PR ...
"""

import logging
import re
from enum import Enum
from typing import Optional

from .errors import UnparseableMessage
from .models import EVERYONE
from .tagger import PartOfSpeechTagger, TaggedToken

logger = logging.getLogger("remindbot.reminders.rewriter")


class TokenClass(Enum):
    """Tokens the rewriter reacts to. Everything else is OTHER."""

    LEAD_IN = "lead_in"  # to, not
    FIRST_PERSON = "first_person"  # i
    CONNECTIVE = "connective"  # that
    BOT_SELF = "bot_self"  # yourself
    THIRD_PERSON = "third_person"  # he, she
    OTHER = "other"

    @classmethod
    def of(cls, token: str) -> "TokenClass":
        return _TOKEN_CLASSES.get(token.lower(), cls.OTHER)


_TOKEN_CLASSES = {
    "to": TokenClass.LEAD_IN,
    "not": TokenClass.LEAD_IN,
    "i": TokenClass.FIRST_PERSON,
    "that": TokenClass.CONNECTIVE,
    "yourself": TokenClass.BOT_SELF,
    "he": TokenClass.THIRD_PERSON,
    "she": TokenClass.THIRD_PERSON,
}

# A pronoun, optionally followed by a form of "to be" and a negation.
# Each alternative captures object/part/negation under its own suffix.
_PRONOUN = re.compile(
    r"""
    \b(?:
        (?P<obj1>i)(?:(?P<part1>'m)|\s(?P<verb1>am|was)(?P<neg1>n't)?)?
      | (?P<obj2>you|they)(?:(?P<part2>'re)|\s(?P<verb2>are|were)(?P<neg2>n't)?)?
      | (?P<obj3>it|he|she)(?:(?P<part3>'s)|\s(?P<verb3>is|was)(?P<neg3>n't)?)?
      | (?P<obj4>mine|me|yours?)
      | (?P<obj5>(?:my|your|it|him|her)(?:self)?)
    )\b
    """,
    re.IGNORECASE | re.VERBOSE,
)


def _squash(text: str) -> str:
    return " ".join(text.split())


def _first(match: re.Match, *names: str) -> Optional[str]:
    for name in names:
        value = match.group(name)
        if value:
            return value
    return None


def _replace_once(pattern: str, replacement: str, message: str) -> str:
    return re.sub(pattern, lambda _: replacement, message, count=1)


def _replace_word_once(word: str, replacement: str, message: str) -> str:
    return _replace_once(rf"\b{re.escape(word)}\b", replacement, message)


def translate_pronouns(
    message: str, username: Optional[str] = None, set_by: Optional[str] = None
) -> str:
    """
    Swap first and second person, re-conjugating "to be" to match.

    Args:
        message: Text to rewrite
        username: Speak about the setter in the third person using this name.
            None addresses the reader as "you".
        set_by: Name substituted for "I" regardless of ``username``

    Returns:
        Rewritten text with whitespace collapsed. Not an involution: applying
        it twice does not give back the original.
    """

    def swap(match: re.Match) -> str:
        original = _first(match, "obj1", "obj2", "obj3", "obj4", "obj5")
        obj = original.lower()
        part = _first(match, "part1", "verb1", "part2", "verb2", "part3", "verb3")
        negated = _first(match, "neg1", "neg2", "neg3") is not None

        if obj == "i":
            out = set_by or username or "you"
        elif obj == "you":
            out = "I " if part else "me"
        elif obj == "me":
            out = username or "you"
        elif obj == "my":
            out = f"{username}'s " if username else "your "
        elif obj == "yourself":
            out = "myself"
        elif obj == "myself":
            out = "him/herself " if username else "yourself "
        elif obj == "mine":
            out = f"{username}'s " if username else "yours "
        elif obj == "your":
            out = "my "
        elif obj == "yours":
            out = "mine "
        elif obj in ("he", "she"):
            out = f" {original}" if username else " you "
        elif obj in ("himself", "herself"):
            out = f" {original}" if username else " yourself "
        else:
            out = original

        if part:
            verb = part.lower()
            became_you = obj in ("he", "she") and not username
            if verb in ("'re", "are"):
                out += "am " if obj == "you" else f" {part}"
            elif verb in ("'m", "am"):
                out += " is " if (username or set_by) else " are"
            elif verb == "was":
                out += " were" if became_you or out == "you" else f" {part}"
            elif verb == "were":
                out += " was" if obj == "you" else f" {part}"
            elif verb in ("'s", "is"):
                out += " are " if became_you else " is"

        if negated:
            out += " not "

        return out

    return _squash(_PRONOUN.sub(swap, message))


def translate_verbs(
    tagger: PartOfSpeechTagger, tag: str, verb: str, message: str
) -> str:
    """Conjugate the first occurrence of ``verb`` in ``message`` to third person."""
    if not verb:
        return message
    return _replace_word_once(verb, tagger.verb_to_third_person(tag, verb), message)


class PronounVerbRewriter:
    """
    Rewrites reminder text for the person who will eventually read it.

    The token scan only handles lead-ins and connectives; the person swap
    itself is done by a final ``translate_pronouns`` pass in the voice
    decided by the last token.
    """

    def __init__(self, tagger: PartOfSpeechTagger):
        self.tagger = tagger

    def prepare(self, message: str, target: str, set_by: str) -> str:
        """
        Tag ``message`` and rewrite it.

        Raises:
            UnparseableMessage: If the tagger yields no tokens
        """
        tagged = self.tagger.tag(message)
        if not tagged:
            raise UnparseableMessage()
        return self.rewrite(message, tagged, target, set_by)

    def rewrite(
        self,
        message: str,
        tagged: list[TaggedToken],
        target: str,
        set_by: str,
    ) -> str:
        # Name used when the setter is talked about in the third person
        third_party = None if target == set_by else set_by
        voice: Optional[str] = None

        for index, (token, _tag) in enumerate(tagged):
            voice = None
            prev_token = tagged[index - 1][0].lower() if index > 0 else ""
            next_token, next_tag = (
                tagged[index + 1] if index + 1 < len(tagged) else ("", "")
            )
            kind = TokenClass.of(token)

            if kind is TokenClass.LEAD_IN:
                # to not do something / not to miss
                if prev_token == "do" or index >= 3:
                    continue
                if next_token.lower() in ("to", "not"):
                    message = _replace_once(
                        rf"\b{re.escape(token)}\s+{re.escape(next_token)}\b",
                        "don't",
                        message,
                    )
                    continue
                voice = third_party
                if voice is None or target == EVERYONE:
                    message = _replace_word_once(token, "", message)

            elif kind is TokenClass.FIRST_PERSON:
                # remind everyone I hate strtotime
                voice = third_party
                if voice:
                    message = translate_verbs(self.tagger, next_tag, next_token, message)

            elif kind is TokenClass.CONNECTIVE:
                if index == 0:
                    message = _replace_word_once(token, "", message)
                if target in (EVERYONE, set_by):
                    if prev_token == "about":
                        message = _replace_word_once("about", "remember", message)
                    else:
                        message = _replace_word_once(token, "", message)
                if prev_token == "about":
                    message = _replace_word_once(token, "", message)

            elif kind is TokenClass.BOT_SELF:
                # remind yourself that you are a bot
                message = _replace_word_once(token, "", message)
                return _squash("I don't need to be reminded " + translate_pronouns(message))

            elif kind is TokenClass.THIRD_PERSON:
                return translate_pronouns(message, None, set_by)

            else:
                voice = third_party

        logger.debug(f"Rewriting in voice {voice or 'you'!r}: {message!r}")
        return translate_pronouns(message, voice)
