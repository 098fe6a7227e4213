import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from podcast_agent import PipelineConfig, PodcastAgent, PodcastError, StageEvent
from podcast_agent.errors import to_error_response


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a two-host podcast episode from a Wikipedia article.")
    parser.add_argument("input", nargs="?", help="Wikipedia article URL or title.")
    parser.add_argument("--type", choices=["url", "title"], help="Force the input type instead of auto-detecting it.")
    parser.add_argument("--output-dir", type=Path, help="Directory to store generated artifacts (default: $OUTPUT_DIR or ./output).")
    parser.add_argument("--script-model", type=str, help="Model name for script generation.")
    parser.add_argument("--script-api-base", type=str, help="Base URL of the OpenAI-compatible script generation API.")
    parser.add_argument("--script-api-key-env", type=str, help="Environment variable containing the script generation API key.")
    parser.add_argument("--temperature", type=float, help="Temperature for the script generation model.")
    parser.add_argument("--tts-provider", type=str, choices=["elevenlabs", "openai"], help="TTS backend to use.")
    parser.add_argument("--tts-model", type=str, help="Model name for the TTS provider.")
    parser.add_argument("--max-retries", type=int, help="Retries for a failed speech synthesis batch.")
    parser.add_argument("--workers", type=int, help="Concurrent synthesis calls (1 keeps synthesis sequential).")
    parser.add_argument("--ffmpeg", type=str, help="Path or name of the ffmpeg binary.")
    parser.add_argument("--discard-segments", action="store_true", help="Delete per-line audio once the episode is stitched.")
    parser.add_argument("--health", action="store_true", help="Check ffmpeg and the output directory, then exit.")
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR).")
    return parser.parse_args()


def build_config(args: argparse.Namespace) -> PipelineConfig:
    config = PipelineConfig.from_env()
    if args.output_dir:
        config.output_root = args.output_dir
    if args.script_model:
        config.script.model = args.script_model
    if args.script_api_base:
        config.script.api_base = args.script_api_base
    if args.script_api_key_env:
        config.script.api_key_env = args.script_api_key_env
    if args.temperature is not None:
        config.script.temperature = args.temperature
    if args.tts_provider == "openai":
        config.tts.provider = "openai"
        config.tts.model = "gpt-4o-mini-tts"
        config.tts.api_base = None
        config.tts.api_key_env = "OPENAI_API_KEY"
    elif args.tts_provider:
        config.tts.provider = args.tts_provider
    if args.tts_model:
        config.tts.model = args.tts_model
    if args.max_retries is not None:
        config.tts.max_retries = max(0, args.max_retries)
    if args.workers is not None:
        config.tts.max_workers = max(1, args.workers)
    if args.ffmpeg:
        config.audio.ffmpeg_bin = args.ffmpeg
    if args.discard_segments:
        config.keep_segments = False
    return config


def print_progress(event: StageEvent) -> None:
    logging.info("[%s] %s: %s", event.stage, event.status, event.message)


def main() -> None:
    args = parse_args()
    load_dotenv()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    config = build_config(args)
    for env_name in config.missing_api_keys():
        logging.warning("%s is not set; the matching service calls will fail.", env_name)

    agent = PodcastAgent(config=config)
    if args.health:
        checks = agent.health()
        logging.info("Health: %s", checks)
        sys.exit(0 if all(value == "ok" for value in checks.values()) else 1)

    if not args.input:
        logging.error("An article URL or title is required.")
        sys.exit(2)

    try:
        result = agent.generate(args.input, args.type, on_progress=print_progress)
    except PodcastError as exc:
        logging.error("Generation failed: %s", to_error_response(exc))
        sys.exit(1)

    logging.info("Podcast audio: %s (%ss)", result.audio_path, result.duration_seconds)
    logging.info("Script: %s", result.script_path)
    logging.info("Metadata: %s", result.metadata_path)


if __name__ == "__main__":
    main()
