from typing import Dict, List, Optional, Iterable, Tuple
import re
import structlog

from context_engine.domain.registry.primitive_registry import RegistrySnapshot
from context_engine.infrastructure.config.settings import get_settings

logger = structlog.get_logger(__name__)

_VOWELS = frozenset("aeiouy")

# Plural "es" is only an inflection after these endings
_SIBILANT_ENDINGS = ("ss", "x", "z", "ch", "sh")


def stem(word: str) -> str:
    """Reduce a lowercase word by stripping one common inflection"""

    if word.endswith("ss"):
        return word
    if word.endswith("ies") and len(word) >= 6:
        return word[:-3] + "y"
    for suffix in ("ing", "ed"):
        if word.endswith(suffix):
            base = word[: -len(suffix)]
            # string, need: the remainder is not a word stem
            if len(base) < 3 or not _VOWELS.intersection(base):
                return word
            # running -> run, stopped -> stop
            if len(base) > 3 and base[-1] == base[-2] and base[-1] not in "lsz":
                base = base[:-1]
            return base
    if word.endswith("es") and word[:-2].endswith(_SIBILANT_ENDINGS) and len(word) >= 5:
        return word[:-2]
    if word.endswith("s") and len(word) >= 4:
        return word[:-1]
    return word


def tokenize(text: str) -> List[str]:
    """Split text into stemmed lowercase terms, keeping order"""

    return [stem(word) for word in re.findall(r"\w+", text.lower())]


def count_topic_overlap(query_terms: List[str], topics: Iterable[str]) -> int:
    """Count distinct topics present in the query terms"""

    term_set = set(query_terms)
    matched = set()

    for topic in topics:
        topic_terms = tokenize(topic)
        if not topic_terms:
            continue
        if len(topic_terms) == 1:
            if topic_terms[0] in term_set:
                matched.add(tuple(topic_terms))
        elif _contains_phrase(query_terms, topic_terms):
            matched.add(tuple(topic_terms))

    return len(matched)


def _contains_phrase(terms: List[str], phrase: List[str]) -> bool:
    width = len(phrase)
    return any(terms[i:i + width] == phrase for i in range(len(terms) - width + 1))


class TriggerMatcher:
    """Ranks skill documents by trigger-topic overlap with free text"""

    def __init__(self, max_matches: Optional[int] = None):
        self.max_matches = max_matches

    def score(self, query_text: str, snapshot: RegistrySnapshot) -> Dict[str, int]:
        """Overlap count per skill, zero scores included"""

        query_terms = tokenize(query_text)
        return {
            skill.name: count_topic_overlap(query_terms, skill.trigger_topics)
            for skill in snapshot.skills
        }

    def match(
        self,
        query_text: str,
        snapshot: RegistrySnapshot,
        limit: Optional[int] = None,
        all_matches: bool = False
    ) -> List[str]:
        """Rank skill names by descending overlap, then name"""

        ranked = self._rank(self.score(query_text, snapshot))

        if not all_matches:
            cap = limit if limit is not None else self._default_cap()
            ranked = ranked[:cap]

        logger.debug("Matched skills", query=query_text[:50], skills=ranked)
        return ranked

    def suggest_personas(self, query_text: str, snapshot: RegistrySnapshot, limit: Optional[int] = None) -> List[str]:
        """Rank persona names by expertise-topic overlap with the query"""

        query_terms = tokenize(query_text)
        scores = {
            persona.name: count_topic_overlap(query_terms, persona.expertise_topics)
            for persona in snapshot.agents
        }
        ranked = self._rank(scores)
        return ranked[:limit] if limit is not None else ranked

    def _default_cap(self) -> int:
        if self.max_matches is not None:
            return self.max_matches
        return get_settings().max_skill_matches

    @staticmethod
    def _rank(scores: Dict[str, int]) -> List[str]:
        ordered: List[Tuple[str, int]] = sorted(
            ((name, score) for name, score in scores.items() if score > 0),
            key=lambda item: (-item[1], item[0])
        )
        return [name for name, _ in ordered]
