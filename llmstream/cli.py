"""CLI entry point for llmstream"""

import logging
from pathlib import Path

import typer

app = typer.Typer(
    name="llmstream",
    help="Stream LLM chat completions over a single SSE protocol",
    add_completion=False,
)


def _setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _load_provider(config_path: Path | None):
    from llmstream.config import ServerConfig
    from llmstream.errors import ConfigurationError, ProviderUnavailableError
    from llmstream.provider.router import get_provider

    config = ServerConfig.load(config_path)
    try:
        return config, get_provider(config.provider)
    except (ConfigurationError, ProviderUnavailableError) as e:
        typer.echo(f"Failed to initialize provider: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Interface to bind"),
    port: int = typer.Option(None, "--port", "-p", help="Port to listen on"),
    config_path: Path = typer.Option(None, "--config", "-c", help="JSON config file"),
    keepalive: float = typer.Option(None, "--keepalive", help="Seconds between SSE keep-alive comments"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Run the HTTP server exposing POST /chat as SSE"""
    from llmstream.server.server import start_server

    _setup_logging(verbose)
    config, provider = _load_provider(config_path)
    start_server(
        provider,
        host=host or config.host,
        port=port or config.port,
        keepalive_interval=keepalive or config.keepalive_interval,
    )


@app.command()
def chat(
    message: str = typer.Argument(..., help="Message to send"),
    system: str = typer.Option(None, "--system", "-s", help="System prompt"),
    usage: bool = typer.Option(False, "--usage", help="Print token usage when done"),
    config_path: Path = typer.Option(None, "--config", "-c", help="JSON config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Send a single message and print the streamed reply"""
    import asyncio
    from llmstream.chat import Message, Role

    _setup_logging(verbose)
    _, provider = _load_provider(config_path)

    messages = []
    if system:
        messages.append(Message(role=Role.SYSTEM, content=system))
    messages.append(Message(role=Role.USER, content=message))

    async def run_chat():
        result = await provider.chat_stream_with_usage(messages)
        async for fragment in result.channel:
            print(fragment, end="", flush=True)
        print()
        if usage:
            counts = result.get_usage()
            if counts:
                typer.echo(
                    f"prompt={counts.prompt_tokens} completion={counts.completion_tokens} total={counts.total_tokens}",
                    err=True,
                )
            else:
                typer.echo("usage unavailable", err=True)

    asyncio.run(run_chat())


def main():
    app()


if __name__ == "__main__":
    main()
