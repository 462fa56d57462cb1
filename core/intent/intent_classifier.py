"""
Intent Classifier - deterministic keyword/entity scoring
Scores every rule in the intent table and keeps the best one.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Sequence

from core.intent.rules import (
    CONFIDENCE_SCALE,
    INTENT_RULES,
    REQUIRED_ENTITY_WEIGHT,
    Intent,
    IntentRule,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Classification:
    intent: Intent
    confidence: float
    score: float


def _has_code(entities: Mapping[str, Any]) -> bool:
    return any(entities.get(key) for key in ("code", "kode", "kode_tugas", "assignment_code"))


def keyword_score(text: str, keywords: Sequence[str]) -> int:
    """+1 for every keyword phrase whose words all appear in the text."""
    tokens = set(text.split())
    score = 0
    for phrase in keywords:
        words = phrase.split()
        if words and all(word in tokens for word in words):
            score += 1
    return score


def score_rule(rule: IntentRule, text: str, entities: Mapping[str, Any]) -> float:
    """Pure scoring function: keywords + weighted required entities + boosts."""
    score: float = keyword_score(text, rule.keywords)

    for name in rule.required_entities:
        if entities.get(name):
            score += REQUIRED_ENTITY_WEIGHT

    has_code = _has_code(entities)
    for boost in rule.boosts:
        if boost.tie_break or (boost.requires_code and not has_code):
            continue
        if boost.pattern.search(text):
            score += boost.weight

    if score > 0:
        score += sum(b.weight for b in rule.boosts if b.tie_break and b.pattern.search(text))
    return score


def classify(text: str, entities: Mapping[str, Any],
             rules: Sequence[IntentRule] = INTENT_RULES) -> Classification:
    """
    Return the best-scoring intent.

    Only a strictly higher score replaces the current best, so ties go to the
    rule declared first. Nothing above zero means `fallback`.
    """
    best_intent = Intent.FALLBACK
    best_score = 0.0
    for rule in rules:
        score = score_rule(rule, text, entities)
        if score > best_score:
            best_intent, best_score = rule.intent, score

    confidence = max(0.0, min(1.0, best_score / CONFIDENCE_SCALE))
    return Classification(intent=best_intent, confidence=confidence, score=best_score)


class IntentClassifier:
    """Thin stateful wrapper so the rule table can be swapped per instance."""

    def __init__(self, rules: Sequence[IntentRule] = INTENT_RULES):
        self.rules = tuple(rules)

    def classify(self, text: str, entities: Mapping[str, Any]) -> Classification:
        result = classify(text, entities, self.rules)
        logger.debug("classified %r -> %s (score=%.2f, confidence=%.2f)",
                     text, result.intent.value, result.score, result.confidence)
        return result

    def scores(self, text: str, entities: Mapping[str, Any]) -> Dict[str, float]:
        """Per-intent scores, for debugging a misclassification."""
        return {rule.intent.value: score_rule(rule, text, entities) for rule in self.rules}
