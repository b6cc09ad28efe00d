"""
Command line entry point.

    livetranslate serve [--config PATH] [--host HOST] [--port PORT]
    livetranslate interpret --source en-US --target es-ES [--target fr-FR ...]
                            [--token-url URL] [--no-audio]

``interpret`` reads finalized recognized text, one utterance per line, from
stdin, streams each translation to stdout and speaks it through the configured
audio output.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional

from dotenv import load_dotenv

from livetranslate import __version__
from livetranslate.config import AppConfig, load_config
from livetranslate.core.models import StreamEvent
from livetranslate.logging_config import configure_logging, get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="livetranslate", description="Real-time translation and speech playback")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", default=None, help="Path to livetranslate.yaml")
    parser.add_argument("--log-level", default=None, help="Override logging level (debug, info, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP token and translation service")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    interpret = sub.add_parser("interpret", help="Translate stdin lines live and play them back")
    interpret.add_argument("--source", required=True, help="Source language code, e.g. en-US")
    interpret.add_argument(
        "--target", action="append", required=True, help="Target language code; repeat for several"
    )
    interpret.add_argument(
        "--token-url", default=None, help="Fetch speech credentials from a remote livetranslate service"
    )
    interpret.add_argument("--no-audio", action="store_true", help="Print translations only")
    return parser


def _setup(args: argparse.Namespace) -> AppConfig:
    load_dotenv()
    config = load_config(args.config)
    configure_logging(log_level=(args.log_level or config.logging.level).upper())
    return config


def _serve(args: argparse.Namespace, config: AppConfig) -> int:
    import uvicorn

    from livetranslate.server import create_app

    host = args.host or config.server.host
    port = args.port or config.server.port
    uvicorn.run(create_app(config), host=host, port=port, log_config=None)
    return 0


def _print_event(lang: str, event: StreamEvent) -> None:
    if event.sequence == 0:
        sys.stdout.write(f"[{lang}] ")
    sys.stdout.write(event.delta)
    if event.is_final:
        sys.stdout.write("\n")
    sys.stdout.flush()


async def _interpret(args: argparse.Namespace, config: AppConfig) -> int:
    from livetranslate.audio.output import build_audio_output
    from livetranslate.audio.scheduler import AudioQueueScheduler
    from livetranslate.core.interpreter import LiveInterpreter
    from livetranslate.credentials.broker import build_credential_broker
    from livetranslate.credentials.cache import CredentialCache
    from livetranslate.credentials.client import AccessTokenClient
    from livetranslate.pipelines.azure_tts import AzureSpeechSynthesizer
    from livetranslate.server import build_normalizer

    normalizer = build_normalizer(config)
    scheduler = None
    closers = []
    if not args.no_audio:
        cache = CredentialCache()
        if args.token_url:
            client = AccessTokenClient(
                args.token_url,
                cache,
                ttl_sec=config.credentials.client_cache_ttl_sec,
                ttl_safety_margin=config.credentials.ttl_safety_margin,
                timeout_sec=config.credentials.timeout_sec,
            )
            credential_source = client.get_credential
            closers.append(client.close)
        else:
            broker = build_credential_broker(config, cache=cache)
            credential_source = broker.get_credential
            closers.append(broker.close)
        synthesizer = AzureSpeechSynthesizer(
            credential_source, config.azure, timeout_sec=config.playback.synthesis_timeout_sec
        )
        closers.append(synthesizer.close)
        output = build_audio_output(config.playback.output, config.playback.sample_rate_hz, config.playback.device)
        scheduler = AudioQueueScheduler(synthesizer, output, config.playback)

    interpreter = LiveInterpreter(normalizer, scheduler)
    logger.info("Interpreter ready", source=args.source, targets=args.target, audio=scheduler is not None)
    try:
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            if not line.strip():
                continue
            await interpreter.handle_final_text(line, args.source, args.target, on_event=_print_event)
        if scheduler is not None:
            await scheduler.wait_idle()
    finally:
        if scheduler is not None:
            await scheduler.close()
        for close in closers:
            await close()
        await normalizer.close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = _setup(args)
    if args.command == "serve":
        return _serve(args, config)
    try:
        return asyncio.run(_interpret(args, config))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
