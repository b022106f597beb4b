"""
message_classifier.py - Rule-based classifiers that build the per-message analysis
"""

from collections import OrderedDict
from typing import Dict, List, Optional, Sequence
import re
import logging
import threading

from utils.helpers import format_phone_number
from .engine_models import (
    IntentResult, SentimentResult, SentimentScores, ExtractedEntities, UrgencyResult,
    TopicMatch, LanguageResult, ComplexityResult, MessageAnalysis, ConversationSession,
    ConversationStage, ResponseContext, Sentiment, UrgencyLevel, ComplexityLevel
)
from .scoring_tables import (
    IntentDefinition, IntentWeights, SentimentLexicon, DEFAULT_INTENTS, DEFAULT_INTENT_WEIGHTS,
    DEFAULT_SENTIMENT_LEXICON, URGENCY_KEYWORDS, TOPIC_KEYWORDS, LANGUAGE_FINGERPRINTS,
    DEFAULT_LANGUAGE, DEFAULT_LANGUAGE_CONFIDENCE, COMPLEXITY_THRESHOLDS, LONG_WORD_LENGTH
)


EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"(?:\+?\d{1,4}[\s-]?)?\(?\d{3}\)?[\s-]?\d{3}[\s-]?\d{4}")
# Anchor word, optional "#/number/id", optional "is" or ":", then a code holding a digit
ORDER_PATTERN = re.compile(
    r"\b(?:order|purchase|transaction)\s*(?:#|number|no\.?|id)?\s*(?:is\b)?\s*:?\s*#?"
    r"((?=[A-Z0-9-]*\d)[A-Z0-9-]{6,})",
    re.IGNORECASE,
)
URL_PATTERN = re.compile(r"https?://[^\s]+")
AMOUNT_PATTERN = re.compile(r"\$\d+(?:\.\d{2})?")
PRODUCT_PATTERN = re.compile(
    r"\b(?:product|item|model)\s*#?\s*(?=[A-Z0-9-]*\d)[A-Z0-9-]+",
    re.IGNORECASE,
)
SENTENCE_SPLIT = re.compile(r"[.!?]+")
WORD_PATTERN = re.compile(r"\w+", re.UNICODE)


class IntentClassifier:
    """Scores each intent by keyword and pattern hits and keeps the best one"""

    def __init__(self, intents: Sequence[IntentDefinition] = DEFAULT_INTENTS,
                 weights: IntentWeights = DEFAULT_INTENT_WEIGHTS):
        self.intents = tuple(intents)
        self.weights = weights

    def classify(self, message: str) -> IntentResult:
        message_lower = message.lower()
        best = IntentResult(self.weights.default_intent, self.weights.default_confidence)

        for definition in self.intents:
            score = self.score_intent(definition, message, message_lower)
            # Strictly greater: the first intent to reach a score keeps it
            if score > best.confidence:
                best = IntentResult(definition.name, score)

        return best

    def score_intent(self, definition: IntentDefinition, message: str,
                     message_lower: Optional[str] = None) -> float:
        if message_lower is None:
            message_lower = message.lower()

        score = 0.0
        for keyword in definition.keywords:
            if keyword.lower() in message_lower:
                score += self.weights.keyword_weight
        for pattern in definition.patterns:
            if pattern.search(message):
                score += self.weights.pattern_weight

        # Rounded so that e.g. three keyword hits equal the floor instead of exceeding it
        return round(min(score, definition.max_confidence), 4)


class SentimentAnalyzer:
    """Word-list sentiment scoring, memoized per normalized message"""

    def __init__(self, lexicon: SentimentLexicon = DEFAULT_SENTIMENT_LEXICON,
                 cache_size: int = 5000):
        self.lexicon = lexicon
        self.cache_size = cache_size
        self._cache: "OrderedDict[str, SentimentResult]" = OrderedDict()
        self._lock = threading.Lock()

    def analyze(self, message: str) -> SentimentResult:
        cache_key = message.lower().strip()
        with self._lock:
            cached = self._cache.get(cache_key)
            if cached is not None:
                self._cache.move_to_end(cache_key)
                return cached

        result = self._score(cache_key)

        with self._lock:
            self._cache[cache_key] = result
            self._cache.move_to_end(cache_key)
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)

        return result

    def cache_info(self) -> Dict[str, int]:
        return {"size": len(self._cache), "max_size": self.cache_size}

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def _score(self, message_lower: str) -> SentimentResult:
        scores = SentimentScores(
            positive=sum(1 for word in self.lexicon.positive if word in message_lower),
            negative=sum(1 for word in self.lexicon.negative if word in message_lower),
            neutral=sum(1 for word in self.lexicon.neutral if word in message_lower),
        )
        counts = {
            Sentiment.POSITIVE: scores.positive,
            Sentiment.NEGATIVE: scores.negative,
            Sentiment.NEUTRAL: scores.neutral,
        }

        for label, count in counts.items():
            others = [other for other_label, other in counts.items() if other_label != label]
            if count > 0 and all(count > other for other in others):
                confidence = min(self.lexicon.max_confidence,
                                 self.lexicon.base_confidence + count * self.lexicon.per_match)
                return SentimentResult(label.value, round(confidence, 4), scores)

        # Ties and empty matches fall back to neutral
        return SentimentResult(Sentiment.NEUTRAL.value, self.lexicon.default_confidence, scores)


class EntityExtractor:
    """Regex extraction of emails, phones, order numbers, URLs, amounts and products"""

    def __init__(self, default_phone_region: Optional[str] = "US"):
        self.default_phone_region = default_phone_region

    def extract(self, message: str) -> ExtractedEntities:
        entities = ExtractedEntities(
            emails=EMAIL_PATTERN.findall(message),
            phones=[match.group(0).strip() for match in PHONE_PATTERN.finditer(message)],
            order_numbers=[match.group(1) for match in ORDER_PATTERN.finditer(message)],
            urls=URL_PATTERN.findall(message),
            amounts=AMOUNT_PATTERN.findall(message),
            products=[match.group(0) for match in PRODUCT_PATTERN.finditer(message)],
        )

        for phone in entities.phones:
            normalized = format_phone_number(phone, default_region=self.default_phone_region)
            if normalized and normalized not in entities.phones_e164:
                entities.phones_e164.append(normalized)

        return entities


class MessageHeuristics:
    """Independent auxiliary scorers: urgency, complexity, topics and language"""

    def __init__(self, urgency_keywords: Sequence[str] = URGENCY_KEYWORDS,
                 topic_keywords: Dict[str, Sequence[str]] = None,
                 language_fingerprints: Dict[str, Sequence[str]] = None):
        self.urgency_patterns = [
            re.compile(r"\b" + re.escape(keyword) + r"\b", re.IGNORECASE)
            for keyword in urgency_keywords
        ]
        self.topic_keywords = topic_keywords or TOPIC_KEYWORDS
        self.language_fingerprints = {
            language: set(words)
            for language, words in (language_fingerprints or LANGUAGE_FINGERPRINTS).items()
        }

    def detect_urgency(self, message: str) -> UrgencyResult:
        urgent_words = sum(1 for pattern in self.urgency_patterns if pattern.search(message))
        exclamations = message.count("!") > 1
        all_caps = (len(message) > 10 and message == message.upper()
                    and any(char.isalpha() for char in message))

        result = UrgencyResult(level=UrgencyLevel.LOW.value, urgent_words=urgent_words,
                               exclamations=exclamations, all_caps=all_caps)
        if result.indicator_count >= 2:
            result.level = UrgencyLevel.HIGH.value
        elif result.indicator_count == 1:
            result.level = UrgencyLevel.MEDIUM.value
        return result

    def assess_complexity(self, message: str) -> ComplexityResult:
        words = message.split()
        word_count = len(words)
        sentences = [part for part in SENTENCE_SPLIT.split(message) if part.strip()]
        sentence_count = max(1, len(sentences))
        avg_words = word_count / sentence_count
        long_words = sum(1 for word in words if len(word) > LONG_WORD_LENGTH)
        ratio = long_words / word_count if word_count else 0.0

        level = ComplexityLevel.SIMPLE.value
        for candidate in (ComplexityLevel.MEDIUM, ComplexityLevel.COMPLEX):
            max_words, max_avg, max_ratio = COMPLEXITY_THRESHOLDS[candidate.value]
            if word_count > max_words or avg_words > max_avg or ratio > max_ratio:
                level = candidate.value

        return ComplexityResult(
            level=level,
            word_count=word_count,
            sentence_count=sentence_count,
            avg_words_per_sentence=round(avg_words, 2),
            complexity_ratio=round(ratio, 2),
        )

    def extract_topics(self, message: str) -> List[TopicMatch]:
        message_lower = message.lower()
        topics = []
        for topic, keywords in self.topic_keywords.items():
            matches = [keyword for keyword in keywords if keyword in message_lower]
            if matches:
                topics.append(TopicMatch(topic=topic,
                                         confidence=round(len(matches) / len(keywords), 4),
                                         matches=matches))

        topics.sort(key=lambda match: match.confidence, reverse=True)
        return topics

    def detect_language(self, message: str) -> LanguageResult:
        tokens = set(WORD_PATTERN.findall(message.lower()))
        best = LanguageResult(DEFAULT_LANGUAGE, DEFAULT_LANGUAGE_CONFIDENCE)

        for language, words in self.language_fingerprints.items():
            confidence = round(len(tokens & words) / len(words), 4)
            if confidence > best.confidence:
                best = LanguageResult(language, confidence)

        return best


class MessageAnalyzer:
    """Runs every classifier over a message and assembles the analysis record"""

    def __init__(self, intent_classifier: IntentClassifier = None,
                 sentiment_analyzer: SentimentAnalyzer = None,
                 entity_extractor: EntityExtractor = None,
                 heuristics: MessageHeuristics = None):
        self.intent_classifier = intent_classifier or IntentClassifier()
        self.sentiment_analyzer = sentiment_analyzer or SentimentAnalyzer()
        self.entity_extractor = entity_extractor or EntityExtractor()
        self.heuristics = heuristics or MessageHeuristics()
        self.logger = logging.getLogger(__name__)

    def analyze(self, message: str, session: Optional[ConversationSession] = None,
                context: Optional[ResponseContext] = None) -> MessageAnalysis:
        if not isinstance(message, str):
            raise TypeError(f"message must be a string, got {type(message).__name__}")

        stage = self.get_conversation_stage(session)
        if context and context.conversation_stage:
            stage = context.conversation_stage

        analysis = MessageAnalysis(
            intent=self.intent_classifier.classify(message),
            sentiment=self.sentiment_analyzer.analyze(message),
            entities=self.entity_extractor.extract(message),
            urgency=self.heuristics.detect_urgency(message),
            topics=self.heuristics.extract_topics(message),
            language=self.heuristics.detect_language(message),
            complexity=self.heuristics.assess_complexity(message),
            conversation_stage=stage,
        )

        if session is not None:
            analysis.previous_intent = session.last_intent
            analysis.conversation_length = session.message_count
            analysis.escalation_attempts = session.escalation_attempts
            analysis.user_satisfaction = session.satisfaction

        self.logger.debug(
            f"Analysis: intent={analysis.intent.intent}({analysis.intent.confidence}) "
            f"sentiment={analysis.sentiment.sentiment} urgency={analysis.urgency.level} "
            f"stage={analysis.conversation_stage}"
        )
        return analysis

    @staticmethod
    def get_conversation_stage(session: Optional[ConversationSession]) -> str:
        if session is None or session.message_count == 0:
            return ConversationStage.INITIAL.value
        if session.message_count <= 2:
            return ConversationStage.GREETING.value
        if session.message_count <= 5:
            return ConversationStage.INFORMATION_GATHERING.value
        if session.has_resolution:
            return ConversationStage.RESOLUTION.value
        if session.message_count > 10:
            return ConversationStage.EXTENDED.value
        return ConversationStage.PROBLEM_SOLVING.value
