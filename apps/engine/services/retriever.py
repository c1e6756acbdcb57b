"""Budgeted relevance retrieval of decisions for language-model grounding.

Ranks a team's decisions against a free-text query and keeps the best ones
that fit a token budget:
- TF-IDF lexical relevance, rebuilt per call (corpora are capped upstream)
- Importance weighting (critical > strategic > medium > low)
- Recency decay for older decisions
- Greedy selection under a hard token ceiling

No model calls and no randomness: the same inputs (and clock) always select
the same decisions in the same order with the same scores.
"""

import math
import re
from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Optional, Sequence

from config import Settings, get_settings
from db.decision_store import DecisionStore
from models.errors import DecisionStoreUnavailable, InvalidQuery
from models.schemas import Decision, Importance, RetrievalResult
from utils.logging import LogContext, get_logger
from utils.timeout import bounded_call

logger = get_logger(__name__)

STOPWORDS = frozenset(
    {
        "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "need", "dare", "ought",
        "used", "to", "of", "in", "for", "on", "with", "at", "by", "from", "as",
        "into", "through", "during", "before", "after", "above", "below", "between",
        "and", "but", "or", "nor", "so", "yet", "both", "either", "neither", "not",
        "only", "own", "same", "than", "too", "very", "just", "also", "now", "here",
        "there", "when", "where", "why", "how", "all", "each", "every",
        "few", "more", "most", "other", "some", "such", "no", "any", "this", "that",
    }
)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
MIN_TOKEN_LENGTH = 3
MONTH = timedelta(days=30)


def tokenize(text: str) -> list[str]:
    """Lower-case, split on non-alphanumeric runs, drop short tokens and stopwords."""
    return [
        token
        for token in _NON_ALNUM.split(text.lower())
        if len(token) >= MIN_TOKEN_LENGTH and token not in STOPWORDS
    ]


def document_text(decision: Decision) -> str:
    """The indexed text of a decision."""
    return f"{decision.actor} {decision.decision} {decision.reasoning}"


class TfidfIndex:
    """Inverse document frequencies over one corpus.

    idf(t) = ln(N / df(t)) + 1, so a term present in every document still
    weighs 1 rather than 0.
    """

    def __init__(self, idf: Optional[dict[str, float]] = None, document_count: int = 0):
        self.idf = idf or {}
        self.document_count = document_count

    @classmethod
    def build(cls, documents: Sequence[Sequence[str]]) -> "TfidfIndex":
        """Build from already-tokenized documents."""
        doc_freq: Counter[str] = Counter()
        for terms in documents:
            doc_freq.update(set(terms))

        n = len(documents)
        idf = {term: math.log(n / df) + 1 for term, df in doc_freq.items()}
        return cls(idf, n)

    def idf_of(self, term: str) -> float:
        # Terms never seen in the corpus weigh neutrally
        return self.idf.get(term, 1.0)

    def score(self, query_terms: Sequence[str], doc_terms: Sequence[str]) -> float:
        """Mean of tf * idf over the query terms."""
        if not query_terms or not doc_terms:
            return 0.0

        counts = Counter(doc_terms)
        doc_length = len(doc_terms)
        total = sum(counts[term] / doc_length * self.idf_of(term) for term in query_terms)
        return total / len(query_terms)


def importance_multiplier(
    importance: Optional[Importance], settings: Optional[Settings] = None
) -> float:
    settings = settings or get_settings()
    if importance is None:
        return settings.importance_default_multiplier
    return settings.importance_multipliers.get(
        importance.value, settings.importance_default_multiplier
    )


def recency_multiplier(
    timestamp: Optional[datetime],
    now: datetime,
    settings: Optional[Settings] = None,
) -> float:
    """Decay by age in 30-day months; undated decisions get a fixed penalty."""
    settings = settings or get_settings()
    if timestamp is None:
        return settings.recency_missing_multiplier

    months_ago = (now - timestamp) / MONTH
    for upper_bound, multiplier in settings.recency_buckets:
        if months_ago < upper_bound:
            return multiplier
    return settings.recency_floor_multiplier


def estimate_tokens(decision: Decision, tokens_per_char: float = 0.25) -> int:
    """Approximate token cost of a decision (~4 characters per token)."""
    text = f"{decision.decision} {decision.reasoning} {decision.actor} {decision.source_ref}"
    return math.ceil(len(text) * tokens_per_char)


@dataclass(frozen=True)
class ScoredDecision:
    decision: Decision
    score: float
    token_estimate: int


class BudgetedRetriever:
    """Selects relevant decisions for a query within a token budget."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def rank(
        self,
        query: str,
        corpus: Sequence[Decision],
        now: Optional[datetime] = None,
    ) -> list[ScoredDecision]:
        """Score every decision and sort by score, best first.

        Ties keep corpus order.
        """
        now = now or datetime.now(UTC)
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        documents = [tokenize(document_text(d)) for d in corpus]
        index = TfidfIndex.build(documents)
        query_terms = tokenize(query)

        scored = []
        for decision, doc_terms in zip(corpus, documents):
            score = index.score(query_terms, doc_terms)
            score *= importance_multiplier(decision.importance, self.settings)
            score *= recency_multiplier(decision.timestamp, now, self.settings)
            scored.append(
                ScoredDecision(
                    decision=decision,
                    score=score,
                    token_estimate=estimate_tokens(
                        decision, self.settings.retrieval_tokens_per_char
                    ),
                )
            )

        scored.sort(key=lambda item: item.score, reverse=True)
        return scored

    def retrieve(
        self,
        query: str,
        corpus: Sequence[Decision],
        token_budget: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> RetrievalResult:
        """Greedily accept the best-scoring decisions that fit the budget.

        Over-budget candidates are skipped while fewer than the minimum number
        of decisions has been accepted, in search of smaller ones further down
        the ranking; once the minimum is met the scan stops at the first
        candidate that does not fit. The running total never exceeds the
        budget, and at most retrieval_max_results decisions are returned.
        """
        budget = self.settings.retrieval_token_budget if token_budget is None else token_budget
        if budget < 0:
            raise InvalidQuery(f"token_budget must be >= 0, got {budget}")

        # First occurrence wins when the corpus repeats an id
        by_id: dict[str, Decision] = {}
        for decision in corpus:
            by_id.setdefault(decision.decision_id, decision)
        unique = list(by_id.values())
        if not unique:
            return RetrievalResult()

        max_results = self.settings.retrieval_max_results
        min_results = self.settings.retrieval_min_results

        selected: list[Decision] = []
        scores: dict[str, float] = {}
        total_tokens = 0

        for item in self.rank(query, unique, now=now):
            if item.score <= 0:
                continue

            if total_tokens + item.token_estimate > budget:
                if len(selected) >= min_results:
                    break
                logger.debug(
                    f"Skipping {item.decision.decision_id}: "
                    f"{item.token_estimate} tokens over remaining budget"
                )
                continue

            selected.append(item.decision)
            scores[item.decision.decision_id] = item.score
            total_tokens += item.token_estimate

            if len(selected) >= max_results:
                break

        logger.info(
            f"Selected {len(selected)}/{len(unique)} decisions "
            f"({total_tokens}/{budget} tokens)"
        )
        return RetrievalResult(decisions=selected, token_count=total_tokens, scores=scores)


async def retrieve_for_team(
    decision_store: DecisionStore,
    team_id: str,
    query: str,
    token_budget: Optional[int] = None,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> RetrievalResult:
    """List the team's most recent decisions and retrieve against them."""
    if not team_id or not team_id.strip():
        raise InvalidQuery("team_id is required")
    settings = settings or get_settings()

    async with LogContext(team_id=team_id):
        corpus = await bounded_call(
            decision_store.list(team_id, limit=settings.retrieval_corpus_limit, offset=0),
            timeout=settings.store_timeout_seconds,
            operation="list_decisions",
            error_cls=DecisionStoreUnavailable,
        )
        corpus = [d for d in corpus if d.team_id == team_id]
        return BudgetedRetriever(settings).retrieve(query, corpus, token_budget, now=now)
