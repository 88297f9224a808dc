"""Command-line interface: send or stream one prompt."""

from __future__ import annotations

import logging
import sys

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table

from llmrelay.client import LLMClient
from llmrelay.config import ProfileSpec, load_config
from llmrelay.errors import LLMError
from llmrelay.providers import PROVIDERS
from llmrelay.types import Fragment, FragmentKind, StreamSummary

console = Console()
err_console = Console(stderr=True)


def _resolve_profile(
    config_path: str | None,
    profile_name: str | None,
    provider: str | None,
    model: str | None,
) -> ProfileSpec:
    config = load_config(config_path)
    if profile_name:
        if profile_name not in config.profiles:
            raise click.BadParameter(
                f"Unknown profile '{profile_name}'. "
                f"Available: {', '.join(sorted(config.profiles))}",
                param_hint="--profile",
            )
        config.profile = profile_name
    spec = config.active_profile
    if provider:
        spec = ProfileSpec(
            provider=provider,
            model=spec.model,
            api_key=spec.api_key if provider == spec.provider else "",
            api_key_env=spec.api_key_env if provider == spec.provider else "",
            options=dict(spec.options),
            settings=dict(spec.settings),
        )
    if model:
        spec.model = model
    return spec


def _print_fragment(fragment: Fragment) -> None:
    if fragment.kind is FragmentKind.TEXT:
        console.print(fragment.text, end="", markup=False, highlight=False)
    elif fragment.kind is FragmentKind.FUNCTION_CALL:
        if fragment.name:
            console.print(f"\n[cyan]> {escape(fragment.name)}[/cyan]", end="")
    elif fragment.kind is FragmentKind.FUNCTION_RESPONSE:
        console.print(f"\n[dim]< {escape(fragment.text)}[/dim]", end="")
    else:
        console.print()
        console.print(fragment.text, style="dim", markup=False, highlight=False)


def _print_summary(summary: StreamSummary) -> None:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="dim")
    table.add_column()
    table.add_row("stop", summary.stop_reason or "-")
    for key, value in summary.usage.items():
        table.add_row(key, str(value))
    if summary.ignored_frames:
        table.add_row("ignored frames", str(summary.ignored_frames))
    for call in summary.tool_calls:
        table.add_row("tool call", f"{call.name}({call.arguments})")
    err_console.print(table)


@click.command()
@click.argument("prompt", required=False)
@click.option("--config", "-c", "config_path", default=None,
              help="Path to llmrelay.yaml (auto-detected from CWD or ~/.config/llmrelay/)")
@click.option("--profile", "-p", "profile_name", default=None, help="Profile name from the config file")
@click.option("--provider", type=click.Choice(sorted(PROVIDERS)), default=None,
              help="Override the profile's provider")
@click.option("--model", "-m", default=None, help="Override the profile's model")
@click.option("--system", "system_prompt", default=None, help="System prompt")
@click.option("--temperature", type=float, default=None, help="Sampling temperature")
@click.option("--max-tokens", type=int, default=None, help="Maximum tokens to generate")
@click.option("--stream/--no-stream", default=True, help="Stream the response incrementally")
@click.option("--raw", is_flag=True, help="Show undecoded stream frames as they arrive")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
def main(prompt: str | None, config_path: str | None, profile_name: str | None,
         provider: str | None, model: str | None, system_prompt: str | None,
         temperature: float | None, max_tokens: int | None, stream: bool,
         raw: bool, verbose: bool):
    """Send PROMPT to Anthropic or Gemini and print the response.

    Reads the prompt from stdin when PROMPT is omitted.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    if prompt is None:
        prompt = click.get_text_stream("stdin").read().strip()
    if not prompt:
        raise click.UsageError("No prompt given")

    try:
        spec = _resolve_profile(config_path, profile_name, provider, model)
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e
    if not spec.model:
        raise click.UsageError("No model configured; pass --model or set one in the profile")

    config = spec.to_config()
    if not config.api_key:
        raise click.ClickException(
            f"No API key for {spec.provider}; set api_key in the profile "
            "or the provider's environment variable"
        )
    overrides = {
        k: v for k, v in {
            "system_prompt": system_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }.items() if v is not None
    }
    if spec.provider == "anthropic" and config.max_tokens is None and "max_tokens" not in overrides:
        overrides["max_tokens"] = 4000
    config = config.replace(streaming=stream, **overrides)

    settings = spec.to_settings()
    if raw:
        settings.verbose = True

    try:
        with LLMClient(spec.provider, config, settings) as client:
            if stream:
                summary = client.stream(prompt, _print_fragment)
                console.print()
                if verbose:
                    _print_summary(summary)
            else:
                console.print(Markdown(client.send(prompt)))
    except LLMError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
