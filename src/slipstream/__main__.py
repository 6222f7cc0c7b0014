import argparse
import asyncio
import os
import signal
import sys

from slipstream.format import Pretty
from slipstream.logs import get_logger, setup_logging


def get_env_or_default(env_var, default, var_type: type = str):
  """Get environment variable with type conversion and default fallback."""
  value = os.getenv(env_var)
  if value is None:
    return default

  if var_type is bool:
    return value.lower() in ("true", "1", "yes", "on")
  elif var_type is int:
    try:
      return int(value)
    except ValueError:
      return default
  else:
    return value


def build_arg_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="slipstream", description="Continuously transcribe the default microphone."
  )
  parser.add_argument(
    "--config",
    type=str,
    default=get_env_or_default("SLIPSTREAM_CONFIG", None),
    help="Path to the YAML configuration file. Defaults apply when omitted. "
    "(Env: SLIPSTREAM_CONFIG)",
  )
  parser.add_argument(
    "--json_logs",
    action="store_true",
    default=get_env_or_default("JSON_LOGS", False, bool),
    help="Output logs in JSON format. (Env: JSON_LOGS)",
  )
  parser.add_argument(
    "--correlation_id",
    type=str,
    default=get_env_or_default("CORRELATION_ID", None),
    help="Correlation ID for log tracing. (Env: CORRELATION_ID)",
  )
  parser.add_argument(
    "--list_devices",
    action="store_true",
    help="List audio input devices and exit.",
  )
  parser.add_argument(
    "--max_iterations",
    type=int,
    default=None,
    help="Stop after this many iterations instead of running until interrupted.",
  )
  return parser


async def main(argv: list[str] | None = None) -> int:
  args = build_arg_parser().parse_args(argv)

  log_level = os.getenv("LOG_LEVEL", "INFO").upper()
  setup_logging(level=log_level, json_output=args.json_logs, correlation_id=args.correlation_id)
  logger = get_logger("main")

  from slipstream.capture import MicrophoneCapture, list_input_devices
  from slipstream.config import SlipstreamConfig, load_config_from_file
  from slipstream.engine import FasterWhisperEngine
  from slipstream.errors import SetupError
  from slipstream.sinks import ConsoleSink
  from slipstream.streaming import IterationScheduler, SampleIngestChannel

  if args.list_devices:
    logger.info("Input devices", devices=Pretty(list_input_devices()))
    return 0

  try:
    if args.config:
      config = load_config_from_file(args.config)
    else:
      config = SlipstreamConfig()
      config.pretty_print()
  except ValueError as e:
    logger.error("Invalid configuration", error=str(e))
    return 1

  logger.info("Starting Slipstream", config_path=args.config, max_iterations=args.max_iterations)

  engine = FasterWhisperEngine(config.engine)
  channel = SampleIngestChannel(config.stream.channel_capacity)
  capture = MicrophoneCapture(channel.push_block, config.stream, config.capture)
  sink = ConsoleSink(config.output.mode)
  scheduler = IterationScheduler(channel, engine, sink, config)

  try:
    await asyncio.to_thread(engine.load)
    engine.check_sample_rate(config.stream.sample_rate)
    capture.start()
  except SetupError as e:
    logger.error("Setup failed", error=str(e))
    capture.stop()
    return 1

  loop = asyncio.get_running_loop()
  for sig in (signal.SIGINT, signal.SIGTERM):
    loop.add_signal_handler(sig, scheduler.stop)

  try:
    await scheduler.run(max_iterations=args.max_iterations)
  finally:
    capture.stop()
    await sink.close()

  return 0


def run() -> None:
  try:
    sys.exit(asyncio.run(main()))
  except KeyboardInterrupt:
    pass


if __name__ == "__main__":
  run()
