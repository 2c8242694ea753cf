"""Request analyzer: keyword heuristics that score registered tools against a request.

Turns a raw request into a RequestAnalysis: extracted keywords, domain,
request type, complexity and the registered tools ranked by confidence.
All weights and cut-offs come from Settings; the keyword tables below are
fixed vocabulary.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..config import Settings, settings as default_settings
from ..errors import ValidationError
from .registry import ThinkingLevel, ToolDescriptor, ToolRegistry

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({
    "the", "and", "or", "but", "for", "with", "about", "against", "between",
    "into", "through", "during", "before", "after", "above", "below", "from",
    "down", "upon", "onto", "under", "beside", "over",
})

# Found anywhere in the text, each is appended to the keywords twice.
SIGNAL_TERMS = (
    "analyze", "analysis", "think", "thought", "sequentially", "sequential",
    "brainstorm", "ideas", "debug", "problem", "decision", "decide", "model",
    "mental", "framework", "stochastic", "random", "probability", "simulate",
    "architecture", "design", "strategy", "plan", "feature", "reflection",
    "foundation", "assumption", "critical", "evaluate", "assessment",
)

DOMAIN_KEYWORDS: Dict[str, Sequence[str]] = {
    "tech": ("code", "software", "program", "develop", "tech", "algorithm", "computer"),
    "business": ("business", "strategy", "market", "customer", "product", "service", "finance"),
    "science": ("science", "research", "experiment", "theory", "hypothesis", "observation"),
    "personal": ("personal", "life", "goal", "habit", "productivity", "improvement", "self"),
    "education": ("learn", "teach", "student", "education", "course", "training", "knowledge"),
}

COMPLEX_TERMS = (
    "algorithm", "architecture", "optimization", "simulation", "infrastructure",
    "scaling", "probability", "statistical", "integration", "comparative",
    "comprehensive", "framework", "theoretical", "implementation", "strategy",
)

# (request type, keyword hits, phrase hits); first match wins.
TYPE_RULES = (
    ("analysis",
     ("analyze", "analysis", "understand", "explain", "why", "how", "what"),
     ("analyze", "understand", "explain")),
    ("decision",
     ("decide", "decision", "choose", "select", "which", "better"),
     ("should i", "which is better", "what should")),
    ("creation",
     ("create", "design", "develop", "build", "implement", "make"),
     ("create", "design", "develop")),
    ("information",
     ("information", "details", "tell"),
     ("what is", "tell me about", "information on", "details about")),
)

TOOL_KEYWORDS: Dict[str, Sequence[str]] = {
    "first_thought_advisor": ("start", "beginning", "approach", "method", "advisor", "recommendation"),
    "mental_model": ("model", "mental", "framework", "principle", "concept", "approach"),
    "sequential_thinking": ("sequential", "step", "phase", "process", "sequence", "linear", "thought"),
    "thought_foundation": ("foundation", "assumption", "axiom", "premise", "basis", "fundamental"),
    "feature_discussion": ("feature", "requirement", "user", "story", "specification", "discussion"),
    "debugging_approach": ("debug", "error", "fix", "issue", "problem", "troubleshoot", "solve"),
    "stochastic_algorithm": ("stochastic", "random", "probability", "uncertainty", "statistical"),
    "brainstorming": ("brainstorm", "idea", "creative", "generate", "ideate", "solution"),
    "critical_analysis": ("critical", "analysis", "evaluate", "assess", "review", "examine"),
    "decision_making": ("decision", "choose", "select", "option", "alternative", "criteria"),
    "feature_analyzer": ("analyze", "requirement", "technical", "feasibility", "implementation"),
    "thought_orchestrator": ("orchestrate", "coordinate", "manage", "integrate", "combine"),
    "cognitive_strategy": ("strategy", "plan", "approach", "cognitive", "optimize", "method"),
    "reflection_engine": ("reflect", "review", "retrospect", "improve", "learn", "insight"),
    "architecture_advisor": ("architecture", "design", "structure", "component", "pattern", "system"),
}

TYPE_TOOLS: Dict[str, Sequence[str]] = {
    "information": ("first_thought_advisor", "mental_model", "thought_foundation"),
    "analysis": ("mental_model", "sequential_thinking", "critical_analysis", "feature_analyzer"),
    "decision": ("decision_making", "stochastic_algorithm", "cognitive_strategy"),
    "creation": ("brainstorming", "feature_discussion", "architecture_advisor"),
    "other": ("thought_orchestrator", "reflection_engine"),
}

COMPLEXITY_LEVELS = {
    "low": ThinkingLevel.FOUNDATION,
    "medium": ThinkingLevel.SPECIALIZED,
    "high": ThinkingLevel.INTEGRATED,
}

URGENCY_TERMS = {
    "high": ("urgent", "asap", "immediately", "emergency", "deadline", "critical"),
    "low": ("eventually", "someday", "whenever", "later"),
}

IMPORTANCE_TERMS = {
    "high": ("important", "critical", "essential", "vital", "crucial", "key"),
    "low": ("minor", "trivial", "unimportant", "curious"),
}

USAGE_HISTORY_KEY = "tool_usage_history"

_PUNCTUATION = re.compile(r"[^\w\s]")


@dataclass
class ToolScore:
    tool: str
    confidence: float


@dataclass
class RequestAnalysis:
    topic: str = "unknown"
    type: str = "other"
    complexity: str = "medium"
    urgency: str = "medium"
    importance: str = "medium"
    domain: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    recommended_tools: List[ToolScore] = field(default_factory=list)


def request_text(request: Any) -> str:
    """Text form of a request: strings as-is, then ``text``/``query`` fields, then JSON."""
    if isinstance(request, str):
        return request
    if isinstance(request, Mapping):
        for key in ("text", "query"):
            if isinstance(request.get(key), str):
                return request[key]
    try:
        return json.dumps(request, sort_keys=True, default=str, ensure_ascii=False)
    except TypeError:
        # Mixed-type dict keys cannot be sorted
        return repr(request)


def _clean(text: str) -> str:
    return _PUNCTUATION.sub(" ", text.lower())


def _overlaps(a: str, b: str) -> bool:
    return a in b or b in a


def _bucket(value: int, cutoffs: Sequence[int]) -> int:
    low, high = cutoffs
    if value < low:
        return 0
    if value < high:
        return 1
    return 2


def _grade(words: Sequence[str], text: str, terms: Mapping[str, Sequence[str]]) -> str:
    for grade in ("high", "low"):
        if any(term in words or f" {term} " in f" {text} " for term in terms[grade]):
            return grade
    return "medium"


class RequestAnalyzer:
    def __init__(
        self,
        registry: ToolRegistry,
        settings: Optional[Settings] = None,
        tool_keywords: Optional[Mapping[str, Sequence[str]]] = None,
        type_tools: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        self.registry = registry
        self.settings = settings or default_settings
        self.tool_keywords = dict(TOOL_KEYWORDS if tool_keywords is None else tool_keywords)
        self.type_tools = dict(TYPE_TOOLS if type_tools is None else type_tools)

    def analyze(self, request: Any, context: Optional[Mapping[str, Any]] = None) -> RequestAnalysis:
        if request is None:
            raise ValidationError("Request is empty")
        context = context or {}
        text = request_text(request)

        analysis = RequestAnalysis()
        analysis.keywords = self.extract_keywords(text)
        analysis.domain = self.determine_domain(analysis.keywords)
        analysis.type = self.determine_type(text, analysis.keywords)
        analysis.complexity = self.determine_complexity(text, analysis.keywords)
        analysis.topic = self.determine_topic(analysis.keywords)

        cleaned = _clean(text)
        analysis.urgency = _grade(analysis.keywords, cleaned, URGENCY_TERMS)
        analysis.importance = _grade(analysis.keywords, cleaned, IMPORTANCE_TERMS)

        scores = []
        for tool in self.registry.all():
            confidence = self.score_tool(tool, analysis, context)
            if confidence >= self.settings.candidate_floor:
                scores.append(ToolScore(tool=tool.name, confidence=confidence))
        scores.sort(key=lambda s: s.confidence, reverse=True)
        analysis.recommended_tools = scores

        logger.debug(
            f"Analyzed request: type={analysis.type} complexity={analysis.complexity} "
            f"domain={analysis.domain} candidates={[(s.tool, round(s.confidence, 2)) for s in scores]}"
        )
        return analysis

    def extract_keywords(self, text: str) -> List[str]:
        cleaned = _clean(text)
        keywords = [
            word for word in cleaned.split()
            if len(word) >= self.settings.min_token_length and word not in STOP_WORDS
        ]
        for term in SIGNAL_TERMS:
            if term in cleaned:
                keywords.extend((term, term))
        return keywords

    def determine_domain(self, keywords: Sequence[str]) -> Optional[str]:
        best_domain, best_score = None, 0
        for domain, words in DOMAIN_KEYWORDS.items():
            score = sum(1 for k in keywords for w in words if _overlaps(k, w))
            if score > best_score:
                best_domain, best_score = domain, score
        return best_domain if best_score >= self.settings.domain_min_score else None

    def determine_type(self, text: str, keywords: Sequence[str]) -> str:
        lower = text.lower()
        for request_type, words, phrases in TYPE_RULES:
            if any(k in words for k in keywords) or any(p in lower for p in phrases):
                return request_type
        return "other"

    def determine_complexity(self, text: str, keywords: Sequence[str]) -> str:
        lower = text.lower()
        complex_terms = sum(1 for term in COMPLEX_TERMS if term in lower)
        score = (
            _bucket(len(text), self.settings.length_cutoffs)
            + _bucket(len(keywords), self.settings.token_cutoffs)
            + _bucket(complex_terms, self.settings.complex_term_cutoffs)
        )
        medium_at, high_at = self.settings.complexity_buckets
        if score < medium_at:
            return "low"
        if score < high_at:
            return "medium"
        return "high"

    def determine_topic(self, keywords: Sequence[str]) -> str:
        topic: List[str] = []
        for word in keywords:
            if word not in SIGNAL_TERMS and word not in topic:
                topic.append(word)
            if len(topic) == 3:
                break
        return " ".join(topic) or "unknown"

    def score_tool(self, tool: ToolDescriptor, analysis: RequestAnalysis, context: Mapping[str, Any]) -> float:
        s = self.settings
        confidence = 0.0

        if COMPLEXITY_LEVELS.get(analysis.complexity) == tool.level.canonical:
            confidence += s.level_bonus

        if tool.name in self.type_tools.get(analysis.type, ()):
            confidence += s.type_bonus

        relevant = self.tool_keywords.get(tool.name, ())
        matches = sum(1 for k in analysis.keywords if any(_overlaps(k, rk) for rk in relevant))
        confidence += min(s.keyword_bonus_cap, matches * s.keyword_bonus_per_match)

        name = tool.name.lower()
        if any(_overlaps(k, name) for k in analysis.keywords):
            confidence += s.self_mention_bonus

        usage = context.get(USAGE_HISTORY_KEY) or {}
        uses = usage.get(tool.name) if isinstance(usage, Mapping) else None
        if uses:
            confidence += min(s.recency_bonus_cap, uses * s.recency_bonus_per_use)

        return min(1.0, max(0.0, confidence))
