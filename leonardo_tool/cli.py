"""
Command-line interface for leonardo-tool.

Provides a Click-based CLI that runs the generate_image workflow once and
prints the structured result as JSON.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import sys
from typing import Any, Optional

import click

from leonardo_tool.config import API_KEY_ENV, Config, load_config
from leonardo_tool.tool import create_leonardo_tool


_MARKERS = {
    "progress": ("[*]", "blue"),
    "image": ("[+]", "green"),
    "failure": ("[-]", "red"),
}


def echo_status(message: str, kind: str = "progress") -> None:
    """Print a marked status line to stderr, keeping stdout for JSON."""
    marker, color = _MARKERS.get(kind, _MARKERS["progress"])
    click.echo(f"{click.style(marker, fg=color)} {message}", err=True)


def report_result(result: dict[str, Any]) -> int:
    """
    Summarize a tool result on stderr.

    Returns:
        Process exit code: 0 when images were produced, 1 otherwise
    """
    if "error" in result:
        echo_status(result["error"], "failure")
        return 1
    echo_status(f"Generation {result['generationId']}: {result['count']} image(s)")
    for url in result["imageUrls"]:
        echo_status(url, "image")
    return 0


def configure_logging(config: Config) -> None:
    """Route package logs according to the configured level and file."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        filename=config.log_file,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_args(
    prompt: str,
    num_images: Optional[int],
    width: Optional[int],
    height: Optional[int],
    preset_style: Optional[str],
) -> dict[str, Any]:
    """Collect CLI options into tool-call arguments, skipping unset ones."""
    args: dict[str, Any] = {"prompt": prompt}
    optional = {
        "num_images": num_images,
        "width": width,
        "height": height,
        "preset_style": preset_style,
    }
    args.update({key: value for key, value in optional.items() if value is not None})
    return args


@click.command()
@click.argument("prompt")
@click.option(
    "--num-images",
    "-n",
    type=int,
    default=None,
    help="Number of images to generate, 1-4 (default: 1)",
)
@click.option("--width", "-W", type=int, default=None, help="Width in pixels")
@click.option("--height", "-H", type=int, default=None, help="Height in pixels")
@click.option(
    "--preset-style",
    "-s",
    default=None,
    help="FASHION, PHOTOGRAPHY, PORTRAIT, CINEMATIC or CREATIVE",
)
@click.option(
    "--timeout",
    "-t",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds to wait for the job (default: from config)",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True),
    help="Path to config file",
)
@click.option(
    "--api-key",
    default=None,
    help=f"Leonardo API key (default: config, then ${API_KEY_ENV})",
)
@click.version_option(package_name="leonardo-tool")
def main(
    prompt: str,
    num_images: Optional[int],
    width: Optional[int],
    height: Optional[int],
    preset_style: Optional[str],
    timeout: Optional[float],
    config_path: Optional[str],
    api_key: Optional[str],
) -> None:
    """
    Generate images with Leonardo.ai and print their URLs.

    Submits one generation job, polls until it finishes, and writes the
    result as JSON to stdout.

    \b
    Examples:
        leonardo-generate "misty forest at dawn"
        leonardo-generate -n 2 -W 512 -H 768 -s CINEMATIC "neon alley"
        leonardo-generate --timeout 30 "studio portrait"
    """
    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    # Apply CLI overrides
    if api_key:
        config.api_key = api_key
    if timeout is not None:
        if math.isnan(timeout):
            raise click.BadParameter("must be a number", param_hint="--timeout")
        config.timeout_seconds = timeout

    configure_logging(config)

    tool = create_leonardo_tool(config)
    if tool is None:
        raise click.UsageError(
            f"No Leonardo API key: set tools.leonardo.apiKey, ${API_KEY_ENV}, "
            "or pass --api-key"
        )

    args = build_args(prompt, num_images, width, height, preset_style)
    echo_status(f"Generating image for: {prompt}")
    result = asyncio.run(tool.execute("cli", args))

    click.echo(json.dumps(result, indent=2))
    sys.exit(report_result(result))


if __name__ == "__main__":
    main()
