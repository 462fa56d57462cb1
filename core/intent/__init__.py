"""
Intent Detection Module
Normalizes text, extracts entities and classifies intent with a declarative rule table
"""

from .entity_extractor import Entities, EntityExtractor
from .intent_classifier import Classification, IntentClassifier, classify
from .normalizer import normalize
from .rules import INTENT_RULES, Intent

__all__ = [
    'Classification',
    'Entities',
    'EntityExtractor',
    'Intent',
    'IntentClassifier',
    'INTENT_RULES',
    'classify',
    'normalize',
]
