#!/usr/bin/env python3
"""
Live Preview Probe
==================

Standalone script to exercise the live preview against a real camera.

This script:
    1. Starts a live preview on the camera at the configured URL
    2. Runs for a configurable duration
    3. Logs preview stats every few seconds
    4. Reports a final summary (optionally saving the last frame)

Prerequisites:
    - Connected to the camera's Wi-Fi (or reachable over the network)
    - Package installed: pip install -e .

Usage:
    python scripts/preview_probe.py --duration 60
    python scripts/preview_probe.py --url http://192.168.1.1 --save-last last.jpg
"""

import argparse
import asyncio
import logging
import os
import sys
import time
from typing import Optional

import cv2
import numpy as np

from osc_preview.camera import HttpxTransport, OscClient
from osc_preview.errors import CommandError, SessionNegotiationError
from osc_preview.stream import LivePreview


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_probe(
    url: str,
    duration: int,
    restart_delay: float,
    report_interval: int,
    save_last: Optional[str],
) -> dict:
    """
    Run the probe.

    Args:
        url: Camera base URL
        duration: Probe duration in seconds
        restart_delay: Seconds between a drop and the restart
        report_interval: Seconds between progress reports
        save_last: Path to write the last frame to, or None

    Returns:
        Final metrics dict
    """
    logger.info("=" * 60)
    logger.info("Live Preview Probe")
    logger.info("=" * 60)
    logger.info(f"Camera URL: {url}")
    logger.info(f"Duration: {duration} seconds")
    logger.info(f"Restart delay: {restart_delay} seconds")
    logger.info("=" * 60)

    client = OscClient(url)
    transport = HttpxTransport()
    preview = LivePreview(client, client, transport, restart_delay=restart_delay)

    last_frame: Optional[np.ndarray] = None
    drops = 0

    def on_frame(image: Optional[np.ndarray]) -> None:
        nonlocal last_frame, drops
        if image is None:
            drops += 1
        else:
            last_frame = image

    start_time = time.time()
    started = True

    try:
        await preview.start(on_frame)
    except (SessionNegotiationError, CommandError) as e:
        logger.error(f"Could not start preview: {e}")
        started = False

    last_report_time = start_time
    last_frame_count = 0

    try:
        while started:
            elapsed = time.time() - start_time
            if elapsed >= duration:
                logger.info(f"Probe duration ({duration}s) reached")
                break

            time_since_report = time.time() - last_report_time
            if time_since_report >= report_interval:
                metrics = preview.metrics
                frames_since_last = metrics.frames_delivered - last_frame_count
                fps = frames_since_last / time_since_report if time_since_report > 0 else 0

                logger.info("-" * 40)
                logger.info(f"Progress Report (elapsed: {elapsed:.0f}s)")
                logger.info(f"  State: {preview.state.value}")
                logger.info(f"  Frames delivered: {metrics.frames_delivered}")
                logger.info(f"  Current FPS: {fps:.1f}")
                logger.info(f"  Decode failures: {metrics.extraction.decode_failures}")
                logger.info(f"  Drops / restarts: {metrics.stream_drops} / {metrics.restarts}")

                last_report_time = time.time()
                last_frame_count = metrics.frames_delivered

            await asyncio.sleep(0.5)

    finally:
        await preview.close()
        await transport.aclose()
        await client.aclose()

    total_time = time.time() - start_time
    metrics = preview.metrics
    avg_fps = metrics.frames_delivered / total_time if total_time > 0 else 0

    if save_last and last_frame is not None:
        cv2.imwrite(save_last, last_frame)
        logger.info(f"Saved last frame to {save_last}")

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.1f} seconds")
    logger.info(f"Frames delivered: {metrics.frames_delivered}")
    logger.info(f"Average FPS: {avg_fps:.1f}")
    logger.info(f"Decode failures: {metrics.extraction.decode_failures}")
    logger.info(f"Stream drops: {metrics.stream_drops} (callback saw {drops})")
    logger.info(f"Restarts: {metrics.restarts}")
    logger.info("=" * 60)

    if metrics.frames_delivered > 0:
        logger.info("PROBE PASSED - Frames delivered")
    else:
        logger.error("PROBE FAILED - No frames delivered")

    return {
        "duration": total_time,
        "frames_delivered": metrics.frames_delivered,
        "avg_fps": avg_fps,
        "stream_drops": metrics.stream_drops,
        "restarts": metrics.restarts,
    }


def main():
    parser = argparse.ArgumentParser(
        description="Probe an OSC camera's live preview stream"
    )
    parser.add_argument(
        "--url",
        type=str,
        default=os.environ.get("OSC_PREVIEW_CAMERA_URL", "http://192.168.1.1"),
        help="Base URL of the camera",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=60,
        help="Probe duration in seconds (default: 60)",
    )
    parser.add_argument(
        "--restart-delay",
        type=float,
        default=5.0,
        help="Seconds before reopening a dropped stream (default: 5)",
    )
    parser.add_argument(
        "--report-interval",
        type=int,
        default=10,
        help="Seconds between progress reports (default: 10)",
    )
    parser.add_argument(
        "--save-last",
        type=str,
        default=None,
        help="Write the last delivered frame to this path",
    )

    args = parser.parse_args()

    result = asyncio.run(run_probe(
        url=args.url,
        duration=args.duration,
        restart_delay=args.restart_delay,
        report_interval=args.report_interval,
        save_last=args.save_last,
    ))

    sys.exit(0 if result["frames_delivered"] > 0 else 1)


if __name__ == "__main__":
    main()
