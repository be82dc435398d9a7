"""One feed run: fetch -> assemble -> dedupe -> match -> enrich -> persist -> trim.

`FeedPipeline.run()` is the single entry point for both the scheduler and
on-demand triggers. Runs never overlap; a trigger that loses the race gets an
`already_running` result and touches nothing.

Items flow through the run in feed order and are enriched one at a time, so
at most one AI call is in flight and the AI budget is a plain counter.
"""

from __future__ import annotations

import logging
import re
import secrets
import time
from typing import List, Optional, Set
from urllib.parse import urlparse

from .assembler import ItemAssembler
from .config import Settings
from .errors import FeedEngineError, ParseError
from .guard import RunGuard
from .metadata import infer_meta
from .models import ManualPosting, NormalizedJob, RawFeedItem, RunResult, RunStats, Salary
from .normalize import ProfessionMatcher, extract_tags
from .rewriter import ContentRewriter
from .sanitize import sanitize_html, strip_document_tags
from .sources.base import FeedSource
from .sources.xml_feed import XMLFeedSource
from .storage import JobStore
from .utils import escape_html, html_to_text, make_slug, stable_id, to_unixtime, truncate_words, uniq_norm_tags

logger = logging.getLogger(__name__)

SHORT_WORDS = 60
MANUAL_SHORT_WORDS = 45
AI_LOG_EVERY = 10

UNIT_LABELS = {
    "YEAR": "ano",
    "MONTH": "mês",
    "WEEK": "semana",
    "DAY": "dia",
    "HOUR": "hora",
}


def job_slug(title: str, company: str, guid: str) -> str:
    return make_slug(f"{title}-{company}") or make_slug(title) or make_slug(guid) or stable_id(guid)[:12]


def _digits(value: str) -> Optional[int]:
    digits = re.sub(r"\D", "", value or "")
    return int(digits) if digits else None


class FeedPipeline:
    """Ingest the configured feed into a `JobStore`."""

    def __init__(
        self,
        settings: Settings,
        store: Optional[JobStore] = None,
        source: Optional[FeedSource] = None,
        rewriter: Optional[ContentRewriter] = None,
        guard: Optional[RunGuard] = None,
    ) -> None:
        self.settings = settings
        self.store = store or JobStore(settings.db_path)
        self.source = source or XMLFeedSource(timeout_s=settings.fetch_timeout)
        self.rewriter = rewriter or ContentRewriter(settings)
        self.guard = guard or RunGuard()
        self.matcher = ProfessionMatcher(settings.profession_keywords)

    def run(self, raise_errors: bool = False) -> RunResult:
        """Run the pipeline now unless a run is already active.

        Fatal errors are logged and reported as a `failed` result; with
        `raise_errors=True` they propagate instead (the guard is released
        either way).
        """
        if not self.settings.feed_url:
            logger.info("[feed] No FEED_URL configured")
            return RunResult(status="disabled")

        result = self.guard.try_run(lambda: self._guarded_run(raise_errors))
        if result is None:
            return RunResult(status="already_running")
        return result

    def _guarded_run(self, raise_errors: bool) -> RunResult:
        stats = RunStats()
        try:
            self._ingest(stats)
        except FeedEngineError as exc:
            logger.error(f"[feed] Run failed: {exc}")
            if raise_errors:
                raise
            return RunResult(status="failed", stats=stats, error=str(exc))
        return RunResult(status="completed", stats=stats)

    def _ingest(self, stats: RunStats) -> None:
        s = self.settings
        limit = "unlimited" if s.ai_process_limit == 0 else f"first {s.ai_process_limit} jobs"
        logger.info(f"[feed] Fetching {s.feed_url}")
        logger.info(
            f"[feed] Profession: {s.target_profession} ({len(self.matcher.keywords)} keywords), "
            f"AI: {'on' if self.rewriter.ai_available else 'off'} ({limit})"
        )

        source_host = urlparse(s.feed_url).hostname or ""
        assembler = ItemAssembler()
        pending: List[NormalizedJob] = []
        pending_guids: Set[str] = set()

        def flush() -> None:
            if pending:
                stats.inserted += self.store.insert_batch(pending)
                pending.clear()
                pending_guids.clear()

        try:
            with self.source.open(s.feed_url) as chunks:
                for item in assembler.assemble(chunks):
                    stats.processed += 1
                    job = self._process(item, stats, source_host, pending_guids)
                    if job is None:
                        continue
                    pending.append(job)
                    pending_guids.add(job.guid)
                    if len(pending) >= s.batch_size:
                        flush()
        except ParseError:
            # Items closed before the error point are still kept.
            flush()
            raise
        flush()

        stats.trimmed = self.store.trim(s.max_jobs)
        logger.info(
            f"[feed] Run complete: processed {stats.processed:,}, matched {stats.matched:,}, "
            f"AI-enhanced {stats.ai_enhanced:,}, fallback {stats.fallback:,}, "
            f"skipped {stats.skipped:,} (duplicates/non-matching), inserted {stats.inserted:,}"
        )

    def _process(self, item: RawFeedItem, stats: RunStats, source_host: str, pending_guids: Set[str]) -> Optional[NormalizedJob]:
        guid = item.guid or item.link or f"job-{stats.processed}"
        if guid in pending_guids or self.store.exists(guid):
            stats.skipped += 1
            return None
        if not self.matcher.matches(item.title, item.company, item.description):
            stats.skipped += 1
            return None
        stats.matched += 1

        limit = self.settings.ai_process_limit
        use_ai = limit == 0 or stats.ai_enhanced < limit
        result = self.rewriter.rewrite(item.title, item.company, item.description, use_ai)
        if result.used_ai:
            stats.ai_enhanced += 1
            if stats.ai_enhanced % AI_LOG_EVERY == 0:
                logger.info(f"[feed] AI-enhanced: {stats.ai_enhanced} jobs...")
        else:
            stats.fallback += 1

        return NormalizedJob(
            guid=guid,
            source=source_host,
            title=item.title or "Untitled",
            company=item.company or "",
            description_html=result.html,
            description_short=truncate_words(result.short, SHORT_WORDS),
            url=item.link or "",
            published_at=to_unixtime(item.pub_date),
            slug=job_slug(item.title, item.company, guid),
            tags=result.tags,
            meta=infer_meta(item.description, item.title, self.settings.site_url, self.settings.default_country),
        )

    def submit_manual(self, posting: ManualPosting) -> Optional[NormalizedJob]:
        """Create a job from a hand-submitted posting; returns None if it was not stored."""
        now_ms = int(time.time() * 1000)
        guid = f"manual-{now_ms}-{secrets.token_hex(8)}"
        user_tags = [t.strip().lower() for t in posting.tags.split(",") if t.strip()]

        if not posting.description.strip():
            logger.info(f"[feed] Generating content for manual post: {posting.title}")
            result = self.rewriter.rewrite(
                posting.title, posting.company, f"<p>Position at {escape_html(posting.company)}</p>", use_ai=True
            )
            html, short, tags = result.html, result.short, result.tags + user_tags
        else:
            html = sanitize_html(strip_document_tags(posting.description))
            short = truncate_words(html_to_text(posting.description), MANUAL_SHORT_WORDS)
            tags = extract_tags(posting.title, posting.company, posting.description, self.settings.target_profession)
            tags += user_tags

        meta = infer_meta(html, posting.title, self.settings.site_url, self.settings.default_country)
        meta.employment_type = posting.employment_type
        meta.is_remote = posting.is_remote
        meta.salary = None
        if posting.currency and (posting.salary_min or posting.salary_max):
            meta.salary = Salary(
                currency=posting.currency.upper(),
                min=_digits(posting.salary_min),
                max=_digits(posting.salary_max),
                unit=posting.salary_unit,
            )
            html += self._salary_line(posting)

        job = NormalizedJob(
            guid=guid,
            source="manual",
            title=posting.title,
            company=posting.company,
            description_html=html,
            description_short=short,
            url=posting.url,
            published_at=now_ms // 1000,
            slug=make_slug(f"{posting.title}-{posting.company}-{now_ms}") or make_slug(guid),
            tags=uniq_norm_tags(tags),
            meta=meta,
        )
        if not self.store.insert_batch([job]):
            return None
        logger.info(f"[feed] Manual job posted: {posting.title} at {posting.company}")
        return job

    @staticmethod
    def _salary_line(posting: ManualPosting) -> str:
        unit = UNIT_LABELS.get(posting.salary_unit, "period")
        low, high = posting.salary_min.strip(), posting.salary_max.strip()
        amount = "-".join(escape_html(v) for v in (low, high) if v)
        return f"\n<p><strong>Salary:</strong> {escape_html(posting.currency)} {amount} per {unit}</p>"
