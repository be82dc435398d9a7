"""CLI entry point.

This script runs the feed pipeline once, or keeps running it on the configured
cron schedule.

Examples:
    python run_feed.py
    python run_feed.py --feed-url https://example.com/feed.xml --db jobs.db
    python run_feed.py --no-ai -v
    python run_feed.py --schedule

Configuration is read from the environment (and a `.env` file); flags
override it.
"""

from __future__ import annotations

import argparse
import logging

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from feed_engine import FeedPipeline, Settings


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Ingest an XML job feed into the job database.")
    p.add_argument("--feed-url", type=str, default=None, help="Override FEED_URL.")
    p.add_argument("--db", type=str, default=None, help="Override DB_PATH (SQLite file).")
    p.add_argument("--no-ai", action="store_true", help="Use the template rewrite only.")
    p.add_argument(
        "--schedule",
        action="store_true",
        help="Run now, then keep running on CRON_SCHEDULE (default is a single run).",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return p.parse_args()


def build_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    overrides = {}
    if args.feed_url:
        overrides["feed_url"] = args.feed_url
    if args.db:
        overrides["db_path"] = args.db
    if args.no_ai:
        overrides["ai_enabled"] = False
    return settings.model_copy(update=overrides)


def run_once(pipeline: FeedPipeline) -> None:
    result = pipeline.run()
    if result.status == "completed" and result.stats:
        st = result.stats
        print(
            f"Done: processed {st.processed}, matched {st.matched}, AI {st.ai_enhanced}, "
            f"fallback {st.fallback}, skipped {st.skipped}, inserted {st.inserted}, trimmed {st.trimmed}"
        )
    elif result.status == "failed":
        print(f"Run failed: {result.error}")
    else:
        print(f"Run {result.status.replace('_', ' ')}")


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = build_settings(args)
    pipeline = FeedPipeline(settings)

    run_once(pipeline)
    if not args.schedule:
        return

    sched = BlockingScheduler()
    sched.add_job(run_once, CronTrigger.from_crontab(settings.cron_schedule), args=[pipeline], id="feed")
    print(f"Scheduler started ({settings.cron_schedule}), Ctrl+C to stop")
    try:
        sched.start()
    except (KeyboardInterrupt, SystemExit):
        pass


if __name__ == "__main__":
    main()
