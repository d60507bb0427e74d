"""
Snapcal CLI Tool

Command-line interface for analyzing food photos with Gemini vision models.

Usage:
    snapcal analyze PHOTO        - Estimate calories for a photo
    snapcal validate-key [KEY]   - Check a Gemini API key
    snapcal models               - Show the model fallback order and budgets
"""

import asyncio
import base64
import json
import mimetypes
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from snapcal import __version__
from snapcal.config import get_settings
from snapcal.core.errors import OperationError
from snapcal.log_config import configure_logging
from snapcal.schemas.analysis import AnalysisResult
from snapcal.schemas.request import EncodedImage
from snapcal.service import FoodAnalysisService

# Load environment variables
load_dotenv()

console = Console()


def encode_photo(path: Path) -> EncodedImage:
    """Read an image file into an EncodedImage."""
    media_type, _ = mimetypes.guess_type(path.name)
    return EncodedImage(
        media_type=media_type or "application/octet-stream",
        data=base64.b64encode(path.read_bytes()).decode("ascii"),
    )


def render_result(result: AnalysisResult) -> None:
    table = Table(title="🍽  Food analysis", show_header=True, header_style="bold cyan")
    table.add_column("Food", style="cyan")
    table.add_column("Quantity")
    table.add_column("Calories", justify="right")
    table.add_column("Confidence", justify="right", style="dim")

    for food in result.foods:
        table.add_row(food.name, food.quantity, str(food.calories), f"{food.confidence:.0%}")

    console.print(table)
    console.print(f"\n[green]✓[/green] Total: [bold]{result.total_calories} cal[/bold]")
    if result.total_macros is not None:
        macros = result.total_macros
        console.print(
            f"[dim]Protein {macros.protein}g · Carbs {macros.carbs}g · "
            f"Fat {macros.fat}g · Fiber {macros.fiber}g[/dim]"
        )
    if result.meal_type is not None:
        console.print(f"[dim]Meal: {result.meal_type.value}[/dim]")
    console.print(f"[dim]Model: {result.model_used}[/dim]")


async def _analyze(image: EncodedImage, api_key: str | None) -> AnalysisResult:
    async with FoodAnalysisService(get_settings()) as service:
        return await service.analyze_food(image, credential_override=api_key)


async def _validate(api_key: str | None) -> bool:
    async with FoodAnalysisService(get_settings()) as service:
        return await service.validate_credential(api_key)


@click.group()
@click.version_option(version=__version__, prog_name="snapcal")
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def main(log_level: str | None):
    """
    Snapcal - calorie estimates from food photos.
    """
    configure_logging(log_level or get_settings().LOG_LEVEL)


@main.command()
@click.argument("photo", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--api-key", default=None, help="Gemini API key (overrides GEMINI_API_KEY)")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def analyze(photo: Path, api_key: str | None, as_json: bool):
    """Estimate calories for the food in PHOTO."""
    try:
        with console.status("[cyan]Analyzing photo...[/cyan]"):
            result = asyncio.run(_analyze(encode_photo(photo), api_key))
    except KeyboardInterrupt:
        sys.exit(130)
    except OperationError as e:
        if e.is_silent:
            sys.exit(130)
        console.print(f"[red]✗ {e.message}[/red]")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.to_payload(), indent=2))
    else:
        render_result(result)


@main.command("validate-key")
@click.argument("key", required=False)
def validate_key(key: str | None):
    """Check KEY (or the configured key) against the Gemini API."""
    try:
        valid = asyncio.run(_validate(key))
    except KeyboardInterrupt:
        sys.exit(130)

    if valid:
        console.print("[green]✓ API key is valid[/green]")
    else:
        console.print("[red]✗ API key is invalid or could not be verified[/red]")
        sys.exit(1)


@main.command()
def models():
    """Show the model fallback order with per-key budgets."""
    settings = get_settings()
    table = Table(title="Model fallback order", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Model", style="cyan")
    table.add_column("Per minute", justify="right")
    table.add_column("Per day", justify="right")

    for position, model in enumerate(settings.get_fallback_models(), start=1):
        table.add_row(
            str(position),
            model.model_id,
            str(model.requests_per_minute),
            str(model.requests_per_day),
        )

    console.print(table)
    console.print(
        f"\n[dim]Demo key budget: {settings.DEMO_REQUESTS_PER_MINUTE}/min, "
        f"{settings.DEMO_REQUESTS_PER_DAY}/day[/dim]"
    )


if __name__ == "__main__":
    main()
