"""Command-line entry point for Skycast."""

import argparse
import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from skycast.config.config_loader import Config, ConfigError
from skycast.version import __version__
from skycast.weather.models import WeatherSample
from skycast.weather.temperature import TemperatureUnit, format_temperature
from skycast.weather.weather_factory import WeatherServiceFactory
from skycast.weather.weather_openweathermap import FetchError
from skycast.weather.weather_service import WeatherService


logger = logging.getLogger(__name__)


def setup_logging(config: Config):
    """Set up console and rotating file logging."""
    log_config = config.logging_config
    log_level = getattr(logging, log_config.get('level', 'INFO'))

    log_dir = Path(log_config.get('log_dir', 'logs'))
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(log_level)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # Console goes to stderr so command output stays clean on stdout
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    max_bytes = log_config.get('max_file_size_mb', 10) * 1024 * 1024
    backup_count = log_config.get('backup_count', 5)

    file_handler = RotatingFileHandler(
        log_dir / 'skycast.log',
        maxBytes=max_bytes,
        backupCount=backup_count
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    logging.info("Logging initialized")


def format_sample(sample: WeatherSample, unit: TemperatureUnit) -> str:
    label = sample.date or sample.name
    line = (
        f"{label}: {format_temperature(sample.temp, unit)} "
        f"(feels like {format_temperature(sample.feels_like, unit)}), "
        f"{sample.description}, humidity {sample.humidity}%, "
        f"wind {sample.wind_speed} m/s"
    )
    if sample.pop is not None:
        line += f", precip {round(sample.pop * 100)}%"
    return line


async def run_command(service: WeatherService, command: str, query: str,
                      unit: TemperatureUnit, limit: Optional[int]) -> List[str]:
    """Execute one CLI command and return the lines to print."""
    if command == 'current':
        sample = await service.get_current_weather(query)
        return [f"{sample.name}, {sample.country}", format_sample(sample, unit)]

    if command == 'hourly':
        samples = await service.get_hourly_forecast(query, limit if limit is not None else 24)
        return [format_sample(sample, unit) for sample in samples]

    if command == 'daily':
        summaries = await service.get_daily_forecast(query, limit if limit is not None else 7)
        return [
            f"{summary.date}: {format_temperature(summary.temp, unit)} "
            f"(low {format_temperature(summary.temp_min, unit)}, "
            f"high {format_temperature(summary.temp_max, unit)}), "
            f"{summary.sample.description}"
            for summary in summaries
        ]

    if command == 'search':
        matches = await service.search_cities(query)
        return [f"{match.label} ({match.lat:.4f}, {match.lon:.4f})" for match in matches]

    raise ValueError(f"Unknown command: {command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='skycast',
        description='Cached weather lookups and daily forecast summaries'
    )
    parser.add_argument('--config', help='Path to configuration file (default: config.yaml)')
    parser.add_argument(
        '--unit',
        choices=[u.value for u in TemperatureUnit],
        default=TemperatureUnit.CELSIUS.value,
        help='Display temperature unit'
    )
    parser.add_argument('--limit', type=int, help='Number of hourly entries or days to show')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('command', choices=['current', 'hourly', 'daily', 'search'])
    parser.add_argument('query', help='City name or search text')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = Config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(config)
    logger.info(f"Skycast v{__version__} starting command {args.command!r}")

    try:
        service = WeatherServiceFactory.create_weather_service(config.to_dict())
        lines = asyncio.run(run_command(
            service, args.command, args.query, TemperatureUnit(args.unit), args.limit
        ))
    except (FetchError, ConfigError) as e:
        logger.error(f"Command {args.command!r} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for line in lines:
        print(line)
    return 0


if __name__ == '__main__':
    sys.exit(main())
