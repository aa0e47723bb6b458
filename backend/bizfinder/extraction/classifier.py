"""Search-result classifier - turns search hits into structured business records.

Each hit is classified with its own LLM call, strictly in input order, so
every prompt/response pair can be attributed to one search result in the
traceability store. A hit whose call, JSON recovery or validation fails is
skipped; it never aborts the run.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any

from bizfinder.config import get_settings
from bizfinder.core.interfaces import ILLMClient, ITraceabilityStore
from bizfinder.extraction.exceptions import ExtractionError
from bizfinder.extraction.prompts import RETRY_REMINDER, build_batch_prompt, build_result_prompt
from bizfinder.extraction.schemas import (
    BatchSummary,
    ClassifierInput,
    ExtractedBusiness,
    ExtractionResult,
    ExtractionSummary,
    RawData,
    SearchHit,
)
from bizfinder.extraction.validation import coerce_classification, is_valid_batch_output
from bizfinder.extraction.website import normalize_website
from bizfinder.llm.exceptions import LLMResponseParseError
from bizfinder.llm.json_extractor import extract_json

logger = logging.getLogger(__name__)

MAX_BATCH_ATTEMPTS = 3


@dataclass
class _TraceContext:
    """Open traceability handles for one run."""

    search_session_id: str | None
    llm_processing_session_id: str


@dataclass
class _HitOutcome:
    business: ExtractedBusiness | None
    error: str | None = None


class SearchResultClassifier:
    """Classifies search hits as company websites vs directories/forums."""

    def __init__(
        self,
        llm_client: ILLMClient,
        traceability: ITraceabilityStore | None = None,
        batch_quick_path: bool = False,
    ) -> None:
        """Initialize the classifier.

        Args:
            llm_client: Text-completion client
            traceability: Audit store; None disables traceability entirely
            batch_quick_path: Attempt one whole-batch prompt before the per-result loop
        """
        self._llm = llm_client
        self._traceability = traceability
        self._batch_quick_path = batch_quick_path

    async def run(self, request: ClassifierInput) -> ExtractionResult:
        """Classify every hit of the request.

        Raises:
            ExtractionError: Only if the batch quick path exhausts its retries
        """
        hits = request.search_results
        logger.info(
            f"Classifying {len(hits)} search results "
            f"(industry: {request.industry or 'Not specified'}, location: {request.location or 'Not specified'})"
        )

        batch_summary = None
        if self._batch_quick_path:
            batch_summary = await self.classify_batch(hits, request.industry, request.location)

        trace = await self._open_trace(request)

        businesses: list[ExtractedBusiness] = []
        accepted = 0
        rejected = 0
        skipped = 0

        for index, hit in enumerate(hits):
            outcome = await self._classify_hit(index, hit, request, trace)

            if outcome.business is None:
                skipped += 1
                logger.warning(f"Skipped result {index + 1}/{len(hits)} ({hit.link}): {outcome.error}")
                continue

            businesses.append(outcome.business)
            if outcome.business.is_company_website:
                accepted += 1
            else:
                rejected += 1

        unique_businesses = self._deduplicate(businesses)
        classified = accepted + rejected
        extraction_quality = accepted / classified if classified > 0 else 0.0

        summary = ExtractionSummary(
            total_results=len(hits),
            company_websites=sum(1 for b in unique_businesses if b.is_company_website),
            directories=sum(1 for b in unique_businesses if not b.is_company_website),
            forms=0,
            accepted=accepted,
            rejected=rejected,
            skipped=skipped,
            extraction_quality=extraction_quality,
        )

        if trace:
            await self._close_trace(trace, summary)

        logger.info(
            f"Classification complete: {summary.company_websites} company websites, "
            f"{summary.directories} directories, {skipped} skipped, "
            f"quality={extraction_quality * 100:.1f}%"
        )

        return ExtractionResult(
            businesses=unique_businesses,
            summary=summary,
            batch_summary=batch_summary,
            llm_processing_session_id=trace.llm_processing_session_id if trace else None,
        )

    async def classify_batch(
        self,
        hits: list[SearchHit],
        industry: str | None = None,
        location: str | None = None,
    ) -> BatchSummary:
        """Classify all hits with a single prompt, retrying up to three times.

        Raises:
            ExtractionError: When every attempt fails
        """
        base_prompt = build_batch_prompt(hits, industry, location)
        prompt = base_prompt
        last_error = ""

        for attempt in range(1, MAX_BATCH_ATTEMPTS + 1):
            logger.info(f"Batch classification attempt {attempt}/{MAX_BATCH_ATTEMPTS}")

            try:
                response = await self._llm.call(prompt)
                data = extract_json(response.content)
                if data is None:
                    raise LLMResponseParseError()
                if not is_valid_batch_output(data):
                    raise LLMResponseParseError("Extracted data does not match expected schema")

                summary = self._summarize_batch(data, len(hits), attempt)
                logger.info(
                    f"Batch quick path: {summary.company_websites} company websites, "
                    f"{summary.directories} directories"
                )
                return summary

            except Exception as e:
                last_error = str(e)
                logger.error(f"Batch attempt {attempt} failed: {last_error}")
                prompt = f"{base_prompt}\n\n{RETRY_REMINDER}"

        raise ExtractionError(
            f"Batch classification failed after {MAX_BATCH_ATTEMPTS} attempts: {last_error}",
            attempts=MAX_BATCH_ATTEMPTS,
        )

    # =========================================================================
    # Per-result processing
    # =========================================================================

    async def _classify_hit(
        self,
        index: int,
        hit: SearchHit,
        request: ClassifierInput,
        trace: _TraceContext | None,
    ) -> _HitOutcome:
        """Classify one hit and record the exchange."""
        prompt = build_result_prompt(hit, request.industry, request.location)
        raw_response = ""
        call_error = None

        started = time.perf_counter()
        try:
            response = await self._llm.call(prompt)
            raw_response = response.content
        except Exception as e:
            call_error = f"Model call failed: {e}"
        processing_time = time.perf_counter() - started

        llm_result_id = None
        search_result_id = hit.search_result_id
        if trace:
            search_result_id = search_result_id or await self._resolve_search_result_id(trace, hit)
            llm_result_id = await self._record(trace, search_result_id, prompt, raw_response, processing_time)

        if call_error:
            return _HitOutcome(business=None, error=call_error)

        parsed = extract_json(raw_response)
        if parsed is None:
            return _HitOutcome(business=None, error="No valid JSON found in response")

        fields = coerce_classification(parsed)
        if fields is None:
            return _HitOutcome(business=None, error="Response is missing 'website' or 'isCompanyWebsite'")

        logger.debug(f"Result {index + 1}: {fields['website']} company={fields['is_company_website']}")

        business = ExtractedBusiness(
            **fields,
            raw_data=RawData(title=hit.title, link=hit.link, snippet=hit.snippet),
            search_result_id=search_result_id,
            llm_processing_result_id=llm_result_id,
        )
        return _HitOutcome(business=business)

    def _deduplicate(self, businesses: list[ExtractedBusiness]) -> list[ExtractedBusiness]:
        """Keep the first business per normalized website."""
        seen: set[str] = set()
        unique: list[ExtractedBusiness] = []

        for business in businesses:
            key = normalize_website(business.website)
            if key in seen:
                continue
            seen.add(key)
            unique.append(business)

        return unique

    def _summarize_batch(self, data: dict[str, Any], total: int, attempts: int) -> BatchSummary:
        websites: dict[str, bool] = {}
        for business in data["businesses"]:
            key = normalize_website(business["website"])
            if key and key not in websites:
                websites[key] = business["isCompanyWebsite"]

        reported_quality = data["summary"].get("extractionQuality", 0.0)
        if isinstance(reported_quality, bool) or not isinstance(reported_quality, (int, float)):
            reported_quality = 0.0

        return BatchSummary(
            total_results=total,
            company_websites=sum(1 for is_company in websites.values() if is_company),
            directories=sum(1 for is_company in websites.values() if not is_company),
            forms=0,
            extraction_quality=min(max(float(reported_quality), 0.0), 1.0),
            attempts=attempts,
        )

    # =========================================================================
    # Traceability (best-effort)
    # =========================================================================

    async def _open_trace(self, request: ClassifierInput) -> _TraceContext | None:
        """Open (or adopt) an LLM processing session. Failures disable traceability."""
        if not request.enable_traceability or self._traceability is None:
            return None

        if request.llm_processing_session_id:
            return _TraceContext(request.search_session_id, request.llm_processing_session_id)

        has_result_ids = any(hit.search_result_id for hit in request.search_results)
        if not request.search_session_id and not has_result_ids:
            logger.info("No search session or stored results, skipping traceability")
            return None

        try:
            llm_session = await self._traceability.create_llm_processing_session(
                search_session_id=request.search_session_id,
                total_results=len(request.search_results),
            )
        except Exception as e:
            logger.error(f"Failed to create LLM processing session, continuing without traceability: {e}")
            return None

        return _TraceContext(request.search_session_id, llm_session["_id"])

    async def _resolve_search_result_id(self, trace: _TraceContext, hit: SearchHit) -> str | None:
        if not trace.search_session_id:
            return None
        try:
            stored = await self._traceability.find_search_result(trace.search_session_id, hit.link)
        except Exception as e:
            logger.error(f"Failed to look up search result {hit.link}: {e}")
            return None
        return stored["_id"] if stored else None

    async def _record(
        self,
        trace: _TraceContext,
        search_result_id: str | None,
        prompt: str,
        raw_response: str,
        processing_time: float,
    ) -> str | None:
        """Write the audit row for one exchange. Returns its ID, or None."""
        if not search_result_id:
            logger.debug("Hit has no stored search result, audit row not written")
            return None

        try:
            row = await self._traceability.process_search_result(
                search_result_id=search_result_id,
                llm_processing_session_id=trace.llm_processing_session_id,
                llm_prompt=prompt,
                llm_response=raw_response,
                processing_time=processing_time,
            )
        except Exception as e:
            logger.error(f"Failed to record LLM result for {search_result_id}: {e}")
            return None

        return row.get("_id") if isinstance(row, dict) else None

    async def _close_trace(self, trace: _TraceContext, summary: ExtractionSummary) -> None:
        try:
            await self._traceability.complete_llm_processing_session(
                trace.llm_processing_session_id,
                accepted_count=summary.accepted,
                rejected_count=summary.rejected,
                error_count=summary.skipped,
                extraction_quality=summary.extraction_quality,
            )
        except Exception as e:
            logger.error(f"Failed to complete LLM processing session {trace.llm_processing_session_id}: {e}")


# =============================================================================
# Factory
# =============================================================================

def create_classifier(
    llm_client: ILLMClient,
    traceability: ITraceabilityStore | None = None,
) -> SearchResultClassifier:
    """Create a classifier configured from settings."""
    settings = get_settings()
    return SearchResultClassifier(
        llm_client=llm_client,
        traceability=traceability,
        batch_quick_path=settings.extraction_batch_quick_path,
    )
