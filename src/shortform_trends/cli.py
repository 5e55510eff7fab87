"""
CLI interface for Shortform Trends
"""

import asyncio
import logging
import click
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich import box

from shortform_trends import __version__
from shortform_trends.ai.agents import ContentRequest, TrendRequest
from shortform_trends.ai.pricing import format_cost
from shortform_trends.ai.providers import parse_provider_config
from shortform_trends.config import Settings
from shortform_trends.errors import MissingCredentialError
from shortform_trends.models import (
    COLLECTABLE_PLATFORMS,
    CollectionOptions,
    Country,
    Platform,
    TrendCollectionResult,
)
from shortform_trends.normalize import format_duration
from shortform_trends.researcher import TrendResearcher
from shortform_trends.storage import Storage


console = Console()

PLATFORM_CHOICES = [p.value.lower() for p in COLLECTABLE_PLATFORMS]
COUNTRY_CHOICES = [c.value for c in Country]


def run_async(coro):
    """Run an async function to completion"""
    return asyncio.run(coro)


def configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
    )


def get_score_color(score: float) -> str:
    """Get color based on a 0-100 score"""
    if score >= 80:
        return "bright_green"
    elif score >= 60:
        return "green"
    elif score >= 40:
        return "yellow"
    elif score >= 20:
        return "orange1"
    else:
        return "red"


def parse_platforms(values: tuple) -> Optional[list[Platform]]:
    if not values:
        return None
    by_name = {p.value.lower(): p for p in COLLECTABLE_PLATFORMS}
    return [by_name[v] for v in values]


def resolve_provider(settings: Settings, provider: Optional[str], model: Optional[str]):
    try:
        return parse_provider_config(provider or settings.resolve_ai_provider(), model)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--provider/--model")


def format_count(value: Optional[int]) -> str:
    if value is None:
        return "-"
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    return str(value)


def print_error(error: BaseException):
    if isinstance(error, MissingCredentialError):
        console.print(f"[red]{error}[/red]")
        console.print(f"[dim]{error.hint}[/dim]")
    else:
        console.print(f"[red]Error: {error}[/red]")


def print_collection(result: TrendCollectionResult):
    if result.videos:
        table = Table(
            title=f"Short-form Trends: '{result.keyword}'",
            box=box.ROUNDED,
            show_lines=True,
            title_style="bold magenta",
        )

        table.add_column("#", style="dim", width=3)
        table.add_column("Title", style="bold", max_width=50)
        table.add_column("Platform", justify="center", width=10)
        table.add_column("Creator", max_width=20)
        table.add_column("Views", justify="right", width=8)
        table.add_column("Length", justify="right", width=7)
        table.add_column("URL", style="cyan", max_width=45, overflow="fold")

        for idx, video in enumerate(result.videos, 1):
            table.add_row(
                str(idx),
                video.title[:50] + "..." if len(video.title) > 50 else video.title,
                video.platform.value,
                video.creator_name or "-",
                format_count(video.view_count),
                format_duration(video.duration_seconds) if video.duration_seconds is not None else "-",
                video.video_url,
            )

        console.print(table)

    breakdown = ", ".join(f"{p.value}: {n}" for p, n in result.breakdown.items())
    console.print(f"\n[dim]Found {result.total_videos} videos ({breakdown or 'none'})[/dim]")

    if result.quota_used:
        console.print(f"[dim]YouTube quota used: {result.quota_used.get('youtube', 0)} units[/dim]")

    for error in result.errors:
        console.print(f"[yellow]{error.platform.value} ({error.source}) failed: {error.error}[/yellow]")


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """
    Shortform Trends - Collect and analyze short-form video trends

    Searches YouTube Shorts, TikTok and Instagram Reels for a keyword and
    scores trends for viral potential and brand fit.
    """
    configure_logging(verbose)


@main.command()
@click.argument("keyword")
@click.option("--max-results", "-n", default=10, type=click.IntRange(1, 50), help="Videos per platform")
@click.option("--platform", "-p", "platforms", multiple=True, type=click.Choice(PLATFORM_CHOICES), help="Platform to search (repeatable)")
@click.option("--country", "-c", default="KR", type=click.Choice(COUNTRY_CHOICES), help="Target country")
@click.option("--language", help="Override the country's default language")
@click.option("--save", is_flag=True, help="Save results to database")
def collect(keyword: str, max_results: int, platforms: tuple, country: str, language: Optional[str], save: bool):
    """Collect short-form videos for a keyword"""

    async def _run():
        settings = Settings.from_env()
        options = CollectionOptions(
            max_results=max_results,
            platforms=parse_platforms(platforms),
            country=Country(country),
            language=language,
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"Collecting videos for '{keyword}'...", total=None)

            storage = Storage(str(settings.db_path)) if save else None
            if storage:
                await storage.connect()
            try:
                async with TrendResearcher.from_settings(settings, storage=storage) as researcher:
                    result = await researcher.collect_trends(keyword, options)
            finally:
                if storage:
                    await storage.close()

        print_collection(result)
        if save and result.videos:
            console.print(f"[green]Saved {result.total_videos} videos to database[/green]")

    try:
        run_async(_run())
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="KEYWORD")


@main.command()
@click.argument("keyword")
@click.option("--max-results", "-n", default=10, type=click.IntRange(1, 50), help="Videos per platform")
def trending(keyword: str, max_results: int):
    """Collect videos published in the last 7 days on every platform"""

    async def _run():
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"Collecting this week's videos for '{keyword}'...", total=None)

            async with TrendResearcher.from_settings() as researcher:
                result = await researcher.collect_trending(keyword, max_results=max_results)

        print_collection(result)

    try:
        run_async(_run())
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="KEYWORD")


@main.command()
@click.argument("keywords", nargs=-1, required=True)
@click.option("--platform", "-p", default="youtube", type=click.Choice(PLATFORM_CHOICES), help="Platform the trend lives on")
@click.option("--country", "-c", default="KR", type=click.Choice(COUNTRY_CHOICES), help="Target country")
@click.option("--context", help="Extra context for the analyst")
@click.option("--provider", type=click.Choice(["openai", "anthropic"]), help="AI provider")
@click.option("--model", help="Model alias (e.g. gpt-4-mini, claude-sonnet)")
@click.option("--no-cache", is_flag=True, help="Skip the response cache")
def analyze(keywords: tuple, platform: str, country: str, context: Optional[str], provider: Optional[str], model: Optional[str], no_cache: bool):
    """Score one or more trends; several keywords are ranked against each other"""

    async def _run():
        settings = Settings.from_env()
        provider_config = resolve_provider(settings, provider, model)
        requests = [
            TrendRequest(keyword=k, platform=platform, country=Country(country), context=context)
            for k in keywords
        ]

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"Analyzing {len(requests)} trend(s)...", total=None)

            async with Storage(str(settings.db_path)) as storage:
                async with TrendResearcher.from_settings(settings, storage=storage) as researcher:
                    comparison = await researcher.analyzer.compare_trends(
                        requests, provider=provider_config, use_cache=not no_cache
                    )
                    for analysis in comparison.ranking:
                        await storage.save_analysis(analysis)

        for request, result in zip(requests, comparison.analyses):
            if result.error:
                console.print(f"[red]{request.keyword}: analysis failed[/red]")
                print_error(result.error)

        if not comparison.ranking:
            return

        table = Table(title="Trend Analysis", box=box.ROUNDED, show_lines=True, title_style="bold magenta")
        table.add_column("#", style="dim", width=3)
        table.add_column("Trend", style="bold", max_width=30)
        table.add_column("Viral", justify="center", width=7)
        table.add_column("Brand fit", justify="center", width=9)
        table.add_column("Score", justify="center", width=7)
        table.add_column("Format", width=12)
        table.add_column("Products", max_width=25)

        for idx, analysis in enumerate(comparison.ranking, 1):
            table.add_row(
                str(idx),
                analysis.trend_name,
                f"[{get_score_color(analysis.viral_score)}]{analysis.viral_score:.0f}[/]",
                f"[{get_score_color(analysis.samyang_relevance)}]{analysis.samyang_relevance:.0f}[/]",
                f"{analysis.composite_score:.1f}",
                analysis.format_type,
                ", ".join(analysis.recommended_products),
            )

        console.print(table)

        best = comparison.best
        console.print(Panel(
            f"""[bold]Hook:[/bold] {best.hook_pattern}
[bold]Visual:[/bold] {best.visual_pattern}
[bold]Music:[/bold] {best.music_pattern}
[bold]Audience:[/bold] {best.target_audience}

[bold]Why it fits:[/bold] {best.brand_fit_reason or '-'}
[bold]Risks:[/bold] {', '.join(best.risks) or '-'}""",
            title=f"[bold cyan]Top trend: {best.trend_name}[/bold cyan]",
            border_style="cyan",
        ))

    run_async(_run())


@main.command()
@click.option("--brand", "-b", required=True, type=click.Choice(["buldak", "samyang_ramen", "jelly"]), help="Brand category")
@click.option("--tone", "-t", default="fun", type=click.Choice(["fun", "kawaii", "provocative", "cool"]), help="Tone and manner")
@click.option("--country", "-c", default="KR", type=click.Choice(COUNTRY_CHOICES), help="Target country")
@click.option("--trend", help="Trend keyword to build on")
@click.option("--description", help="Trend description")
@click.option("--platform", "-p", type=click.Choice(PLATFORM_CHOICES), help="Preferred platform")
@click.option("--count", "-n", default=1, type=click.IntRange(1, 5), help="Number of variations")
@click.option("--provider", type=click.Choice(["openai", "anthropic"]), help="AI provider")
@click.option("--model", help="Model alias")
def ideas(brand: str, tone: str, country: str, trend: Optional[str], description: Optional[str], platform: Optional[str], count: int, provider: Optional[str], model: Optional[str]):
    """Generate short-form content ideas"""

    async def _run():
        settings = Settings.from_env()
        provider_config = resolve_provider(settings, provider, model)
        request = ContentRequest(
            brand_category=brand,
            tone=tone,
            target_country=Country(country),
            trend_keyword=trend,
            trend_description=description,
            preferred_platform=platform,
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Generating content ideas...", total=None)

            async with Storage(str(settings.db_path)) as storage:
                async with TrendResearcher.from_settings(settings, storage=storage) as researcher:
                    results = await researcher.generate_ideas(request, count=count, provider=provider_config)

        for idx, result in enumerate(results, 1):
            if not result.ok:
                console.print(f"[red]Idea #{idx} failed[/red]")
                print_error(result.error)
                continue

            idea = result.object
            scenes = "\n".join(
                f"  {n}. ({s.duration}) {s.description} - {s.action}"
                for n, s in enumerate(idea.scene_structure, 1)
            )
            console.print(Panel(
                f"""[bold]Hook:[/bold] {idea.hook_text}
[bold]Hook visual:[/bold] {idea.hook_visual}

[bold]Format:[/bold] {idea.format_type}  |  [bold]Platform:[/bold] {idea.platform}  |  [bold]Virality:[/bold] {idea.expected_performance.virality_potential}

[bold]Scenes:[/bold]
{scenes}

[bold]Editing:[/bold] {idea.editing_format}
[bold]Music:[/bold] {idea.music_style}
[bold]Hashtags:[/bold] {' '.join(idea.hashtags)}""",
                title=f"[bold cyan]Idea #{idx}: {idea.title}[/bold cyan]",
                border_style="cyan",
            ))

    run_async(_run())


@main.command()
@click.option("--days", "-d", type=int, help="Only count API usage from the last N days")
def stats(days: Optional[int]):
    """Show database and API usage statistics"""

    async def _run():
        settings = Settings.from_env()
        async with Storage(str(settings.db_path)) as storage:
            data = await storage.get_stats()
            usage = await storage.get_usage_summary(days=days)

        console.print("\n[bold magenta]Database Statistics[/bold magenta]\n")

        console.print(f"Total Videos: [cyan]{data['total_videos']}[/cyan]")
        console.print(f"Trend Analyses: [cyan]{data['total_analyses']}[/cyan]")
        console.print(f"AI Calls: [cyan]{data['total_api_calls']}[/cyan]")

        if data.get("videos_by_platform"):
            console.print("\n[bold]Videos by Platform:[/bold]")
            for platform, count in data["videos_by_platform"].items():
                console.print(f"  {platform}: {count}")

        if data.get("top_keywords"):
            console.print("\n[bold]Top Keywords:[/bold]")
            for keyword, count in list(data["top_keywords"].items())[:5]:
                console.print(f"  {keyword}: {count}")

        if usage["by_model"]:
            table = Table(title="AI Usage", box=box.ROUNDED)
            table.add_column("Provider")
            table.add_column("Model")
            table.add_column("Calls", justify="right")
            table.add_column("Cache hits", justify="right")
            table.add_column("Tokens", justify="right")
            table.add_column("Cost", justify="right")

            for row in usage["by_model"]:
                table.add_row(
                    row["provider"],
                    row["model"],
                    str(row["calls"]),
                    str(row["cache_hits"]),
                    format_count(row["tokens"]),
                    format_cost(row["cost_usd"]),
                )
            console.print()
            console.print(table)
            console.print(f"[dim]Total estimated cost: {format_cost(usage['total_cost_usd'])}[/dim]")

    run_async(_run())


@main.command()
@click.option("--days", "-d", default=30, help="Remove videos older than this many days")
@click.confirmation_option(prompt="This will delete old videos. Continue?")
def cleanup(days: int):
    """Clean up old videos from database"""

    async def _run():
        settings = Settings.from_env()
        async with Storage(str(settings.db_path)) as storage:
            deleted = await storage.cleanup_old_videos(days=days)

        console.print(f"[green]Cleaned up {deleted} old videos.[/green]")

    run_async(_run())


@main.command("platforms")
def list_platforms():
    """List platforms and whether their credentials are configured"""
    settings = Settings.from_env()
    console.print("\n[bold magenta]Platforms[/bold magenta]\n")

    platforms_info = [
        ("youtube", "YouTube Shorts via YouTube Data API v3", "YOUTUBE_API_KEY", settings.youtube_api_key),
        ("tiktok", "TikTok via SerpAPI Google Videos", "SERPAPI_API_KEY", settings.serpapi_api_key),
        ("instagram", "Instagram Reels via SerpAPI Google Videos", "SERPAPI_API_KEY", settings.serpapi_api_key),
        ("openai", "Trend analysis / ideas (OpenAI)", "OPENAI_API_KEY", settings.openai_api_key),
        ("anthropic", "Trend analysis / ideas (Anthropic)", "ANTHROPIC_API_KEY", settings.anthropic_api_key),
    ]

    table = Table(box=box.ROUNDED)
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Env var", style="dim")
    table.add_column("Status", justify="center")

    for name, desc, env_var, key in platforms_info:
        status = "[green]Configured[/green]" if key else "[dim]Missing key[/dim]"
        table.add_row(name, desc, env_var, status)

    console.print(table)

    store = "Redis" if settings.redis_url else "in-memory"
    console.print(f"\n[dim]Cache / rate-limit store: {store}[/dim]")


if __name__ == "__main__":
    main()
