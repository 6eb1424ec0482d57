"""
Relevance classification of unfiltered articles.

Articles are scored in fixed-size batches, one model call per batch.
A failing batch is recorded and skipped; the remaining batches still run.
"""
import math
from collections.abc import Collection, Sequence
from typing import Any, Optional

import structlog

from newsfilter.core.clock import utcnow
from newsfilter.errors import BatchClassificationError, NoActiveCriteriaError
from newsfilter.models.database import Database
from newsfilter.models.domain import Article, Criterion, FilterResult, FilterSummary
from newsfilter.repositories import articles as articles_repo
from newsfilter.repositories import criteria as criteria_repo
from newsfilter.services.llm import ModelClient, extract_json_array

logger = structlog.get_logger(__name__)

PROMPT_SUMMARY_LIMIT = 300
DEFAULT_REASON = "No reason provided"
RELEVANCE_THRESHOLD = 0.5


def build_filter_prompt(articles: Sequence[Article], criteria: Sequence[Criterion]) -> str:
    """Render the criteria and one line per article into a scoring prompt."""
    criteria_text = "\n\n".join(f"### {c.name}\n{c.description}" for c in criteria)

    lines = []
    for article in articles:
        line = f"- ID: {article.id} | Title: {article.title}"
        if article.summary:
            line += f" | Summary: {article.summary[:PROMPT_SUMMARY_LIMIT]}"
        if article.url:
            line += f" | URL: {article.url}"
        lines.append(line)
    article_list = "\n".join(lines)

    return f"""You are a news article relevance filter. Evaluate each article against the criteria below and return a JSON array.

## Criteria
{criteria_text}

## Articles
{article_list}

## Instructions
For each article, evaluate its relevance to the criteria above. Return a JSON array with one object per article:
- "id": the article ID (number)
- "score": relevance score from 0.0 to 1.0 (0 = not relevant, 1 = highly relevant)
- "relevant": boolean, true if score >= 0.5
- "reason": brief explanation (1-2 sentences) of why the article is or isn't relevant

Return ONLY the JSON array, no other text. Example:
[{{"id": 1, "score": 0.8, "relevant": true, "reason": "Article covers React 19 release with new features."}}]"""


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _as_article_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def normalize_filter_result(
    record: Any,
    batch_ids: Optional[Collection[int]] = None,
) -> Optional[FilterResult]:
    """
    Turn one raw model record into a FilterResult.

    The score is clamped to [0, 1]; `relevant` defaults to score >= 0.5
    and `reason` to a fixed placeholder. Records with an unknown id or a
    non-numeric score give None.
    """
    if not isinstance(record, dict):
        return None

    article_id = _as_article_id(record.get("id"))
    if article_id is None or (batch_ids is not None and article_id not in batch_ids):
        return None

    raw_score = _as_number(record.get("score"))
    if raw_score is None:
        return None
    score = max(0.0, min(1.0, raw_score))

    relevant = record.get("relevant")
    if not isinstance(relevant, bool):
        relevant = raw_score >= RELEVANCE_THRESHOLD

    reason = record.get("reason")
    if not isinstance(reason, str) or not reason.strip():
        reason = DEFAULT_REASON

    return FilterResult(id=article_id, score=score, relevant=relevant, reason=reason)


class RelevanceClassifier:
    """Scores unfiltered articles against the active criteria."""

    def __init__(
        self,
        database: Database,
        model: ModelClient,
        batch_size: int = 20,
        max_articles: int = 200,
    ):
        self.database = database
        self.model = model
        self.batch_size = batch_size
        self.max_articles = max_articles

    async def filter_articles(self) -> FilterSummary:
        """
        Run one classification pass.

        Raises:
            NoActiveCriteriaError: no criterion is active
            MissingCredentialError: no model API key can be resolved
        """
        async with self.database.async_session() as session:
            criteria = await criteria_repo.list_active_criteria(session)
            if not criteria:
                raise NoActiveCriteriaError()

            await self.model.resolve_api_key()

            unfiltered = await articles_repo.list_unfiltered_articles(
                session, limit=self.max_articles
            )

        summary = FilterSummary()
        if not unfiltered:
            return summary

        for start in range(0, len(unfiltered), self.batch_size):
            batch = unfiltered[start:start + self.batch_size]
            summary.batches += 1
            batch_number = summary.batches

            try:
                logger.info("Filtering batch", batch=batch_number, size=len(batch))
                scored = await self._classify_batch(batch, criteria)
                summary.filtered += scored
                logger.info("Batch scored", batch=batch_number, scored=scored)
            except Exception as e:
                message = f"Batch {batch_number} failed: {e}"
                logger.error("Batch failed", batch=batch_number, error=str(e))
                summary.errors.append(message)

        return summary

    async def _classify_batch(
        self,
        batch: Sequence[Article],
        criteria: Sequence[Criterion],
    ) -> int:
        """Score one batch and persist every verdict in a single transaction."""
        reply = await self.model.complete(build_filter_prompt(batch, criteria))

        try:
            records = extract_json_array(reply)
        except ValueError as e:
            raise BatchClassificationError(str(e)) from e

        batch_ids = {article.id for article in batch}
        results = [
            result
            for result in (normalize_filter_result(record, batch_ids) for record in records)
            if result is not None
        ]

        filtered_at = utcnow()
        scored = 0
        async with self.database.async_session() as session:
            async with session.begin():
                for result in results:
                    updated = await articles_repo.update_article_relevance(
                        session,
                        result.id,
                        score=result.score,
                        reason=result.reason,
                        is_relevant=result.relevant,
                        filtered_at=filtered_at,
                    )
                    if updated:
                        scored += 1
        return scored

    async def clear_all_scores(self) -> int:
        """Reset every article's verdict so the next pass rescores it."""
        async with self.database.async_session() as session:
            cleared = await articles_repo.clear_all_scores(session)
            await session.commit()
        logger.info("Relevance scores cleared", cleared=cleared)
        return cleared
