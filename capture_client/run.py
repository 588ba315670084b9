"""
Capture frames from a local camera and stream captions for this machine's session.

Usage:
    vision-captions-client --server http://localhost:8000
    vision-captions-client --fps 0.5 --quality 0.6 --prompt DETAILED
"""

import argparse
import asyncio
import logging
import os
import sys

from capture_client.api_client import CaptionApiClient
from capture_client.capture import CameraError, CaptureSource
from capture_client.latency import LatencyTracker
from capture_client.pipeline import CaptionPipeline
from capture_client.realtime_subscriber import RealtimeSubscriber, SubscriberState, WebsocketTransport
from capture_client.session_manager import SessionManager

LOGGER = logging.getLogger("capture_client")


def _parse_device(value: str):
    return int(value) if value.isdigit() else value


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    p.add_argument("--server", default=os.getenv("VISION_SERVER_URL", "http://localhost:8000"))
    p.add_argument("--device", default="0", help="Camera index or stream URL")
    p.add_argument("--fps", type=float, default=1.0)
    p.add_argument("--quality", type=float, default=0.75, help="JPEG quality in (0, 1]")
    p.add_argument("--model", default=None, help="Model alias or id")
    p.add_argument("--prompt", default=None, help="Prompt preset (DEFAULT, DETAILED, BRIEF) or literal text")
    p.add_argument("--session-file", default=None)
    p.add_argument("--verbose", action="store_true")
    return p


def _print_caption(caption):
    print(f"\n[{caption.get('timestamp')}] {caption.get('caption')}", flush=True)


async def run(args: argparse.Namespace) -> int:
    session_id = SessionManager(args.session_file).get_or_create_session_id()
    print(f"Session: {session_id[:8]}")

    api = CaptionApiClient(args.server, model=args.model, prompt=args.prompt)
    latency = LatencyTracker()
    subscriber = RealtimeSubscriber(
        session_id,
        api,
        lambda: WebsocketTransport(args.server),
        on_new_caption=_print_caption,
        latency=latency,
    )
    source = CaptureSource(_parse_device(args.device), quality=args.quality, fps=args.fps)
    pipeline = CaptionPipeline(api, session_id, latency=latency)

    try:
        if await subscriber.start() == SubscriberState.ERROR:
            print(subscriber.error, file=sys.stderr)
            return 1
        for caption in subscriber.captions:
            _print_caption(caption)
        try:
            await source.open()
        except CameraError as exc:
            print(f"Camera Error: {exc.message}", file=sys.stderr)
            print("Restart the client to try again.", file=sys.stderr)
            return 2
        await pipeline.run(source)
    finally:
        await subscriber.close()
        await source.close()
        await api.aclose()
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
