#!/usr/bin/env python3
"""
Headless Session Smoke Run
==========================

Standalone script that drives a full now-playing session without the
HTTP layer.

This script:
    1. Builds the runtime from config.yaml (plus CLI overrides)
    2. Sends a play intent, as a user gesture would
    3. Logs sync-loop, cache and media-session stats periodically
    4. Seeks forward once half-way through, then pauses
    5. Reports a final summary

Usage:
    python scripts/smoke_session.py --duration 20
    python scripts/smoke_session.py --user-agent "Mozilla/5.0 (iPhone)" --duration 10
"""

import argparse
import asyncio
import logging
import os
import sys
import time
from typing import Optional

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from nowplaying_sync.config import load_config
from nowplaying_sync.main import create_runtime, shutdown_runtime
from nowplaying_sync.models import ControlAction, ControlIntent


logger = logging.getLogger("smoke_session")


def log_stats(runtime, elapsed: float) -> None:
    loop_metrics = runtime.sync_loop.metrics
    cache_metrics = runtime.cache.metrics()
    
    logger.info("-" * 40)
    logger.info(f"Progress Report (elapsed: {elapsed:.0f}s)")
    logger.info(f"  Position: {runtime.element.current_time:.2f}s")
    logger.info(f"  Unlock state: {runtime.unlock.state.value}")
    logger.info(f"  Ticks: {loop_metrics.ticks}")
    logger.info(f"  Artwork swaps: {loop_metrics.metadata_updates}")
    logger.info(f"  Position reports: {loop_metrics.position_reports}")
    logger.info(f"  Rejections: {loop_metrics.metadata_rejections + loop_metrics.position_rejections}")
    logger.info(f"  Cache: {cache_metrics['size']}/{cache_metrics['capacity']} "
                f"(evicted {cache_metrics['evicted_count']})")


async def run_smoke(
    config_path: Optional[str],
    duration: int,
    report_interval: int,
    user_agent: Optional[str],
    max_touch_points: Optional[int],
) -> dict:
    """
    Run one headless session.
    
    Args:
        config_path: Path to config.yaml (None searches the defaults)
        duration: Run time in seconds
        report_interval: Seconds between progress reports
        user_agent: Platform user agent override
        max_touch_points: Platform touch points override
        
    Returns:
        Final metrics dict
    """
    cfg = load_config(config_path)
    if user_agent is not None:
        cfg.platform.user_agent = user_agent
    if max_touch_points is not None:
        cfg.platform.max_touch_points = max_touch_points
    
    runtime = create_runtime(cfg)
    
    logger.info("=" * 60)
    logger.info("Headless Session Smoke Run")
    logger.info("=" * 60)
    logger.info(f"Platform: {runtime.profile.label}")
    logger.info(f"Duration: {duration} seconds")
    logger.info(f"Position interval: {runtime.policy.position_report_interval_ms}ms")
    logger.info(f"Metadata interval: {runtime.policy.metadata_update_interval_ms}ms")
    logger.info(f"Cache capacity: {runtime.cache.capacity}")
    logger.info("=" * 60)
    
    runtime.session.attach()
    runtime.intent_task = asyncio.create_task(runtime.session.run())
    runtime.session.post(ControlIntent(action=ControlAction.PLAY))
    
    start_time = time.time()
    last_report_time = start_time
    seeked = False
    
    try:
        while True:
            elapsed = time.time() - start_time
            
            if elapsed >= duration:
                logger.info(f"Run duration ({duration}s) reached")
                break
            
            if not seeked and elapsed >= duration / 2:
                runtime.session.post(ControlIntent(action=ControlAction.SEEK_FORWARD))
                seeked = True
            
            if time.time() - last_report_time >= report_interval:
                log_stats(runtime, elapsed)
                last_report_time = time.time()
            
            await asyncio.sleep(0.5)
            
    except KeyboardInterrupt:
        logger.info("Run interrupted by user")
    finally:
        runtime.session.post(ControlIntent(action=ControlAction.PAUSE))
        await asyncio.sleep(0.1)
        await shutdown_runtime(runtime)
    
    total_time = time.time() - start_time
    loop_metrics = runtime.sync_loop.metrics
    
    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.1f} seconds")
    logger.info(f"Unlock state: {runtime.unlock.state.value}")
    logger.info(f"Ticks: {loop_metrics.ticks}")
    logger.info(f"Artwork swaps: {loop_metrics.metadata_updates}")
    logger.info(f"Position reports: {loop_metrics.position_reports}")
    logger.info(f"Prefetch requests: {loop_metrics.prefetch_requests}")
    logger.info(f"Loader: {runtime.loader.metrics()}")
    logger.info("=" * 60)
    
    if loop_metrics.metadata_updates > 0:
        logger.info("✅ SMOKE PASSED - Artwork followed playback")
    else:
        logger.error("❌ SMOKE FAILED - No artwork updates")
    
    return {
        "duration": total_time,
        "ticks": loop_metrics.ticks,
        "metadata_updates": loop_metrics.metadata_updates,
        "position_reports": loop_metrics.position_reports,
        "unlock_state": runtime.unlock.state.value,
    }


def main():
    parser = argparse.ArgumentParser(
        description="Headless smoke run of a now-playing session"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config.yaml (default: search the usual locations)",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=20,
        help="Run duration in seconds (default: 20)",
    )
    parser.add_argument(
        "--report-interval",
        type=int,
        default=5,
        help="Seconds between progress reports (default: 5)",
    )
    parser.add_argument(
        "--user-agent",
        type=str,
        default=None,
        help="Platform user agent (default: from config)",
    )
    parser.add_argument(
        "--max-touch-points",
        type=int,
        default=None,
        help="Platform touch points (default: from config)",
    )
    
    args = parser.parse_args()
    
    result = asyncio.run(run_smoke(
        config_path=args.config,
        duration=args.duration,
        report_interval=args.report_interval,
        user_agent=args.user_agent,
        max_touch_points=args.max_touch_points,
    ))
    
    sys.exit(0 if result["metadata_updates"] > 0 else 1)


if __name__ == "__main__":
    main()
