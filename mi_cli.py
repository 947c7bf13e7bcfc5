"""Command-line driver: feed MI text to the parser, or serve the HTTP API."""

import json
from pathlib import Path
from typing import List, Optional

import typer

import mi_config
from gdbmi import GdbMiParser
from mi_records import OutcomeCode, Output, OutputKind

app = typer.Typer(
    name="gdbmi-parse",
    help="Parse GDB/MI output into structured records.",
    add_completion=False,
)


def _describe(out: Output) -> str:
    if out.kind is OutputKind.PARSE_ERROR:
        pos = out.error.position
        return f"parse-error {pos.start_column}-{pos.end_column}: {out.line}"
    if out.kind is OutputKind.PROMPT:
        return "prompt"
    if out.kind is OutputKind.RESULT:
        rec = out.result
        token = f" token={rec.token}" if rec.token else ""
        return f"result {rec.class_name}{token} ({len(rec.results)} results)"
    rec = out.oob.record
    if out.oob.stream_record is not None:
        return f"{rec.kind.value} {rec.text!r}"
    return f"{rec.kind.value} {rec.class_name} ({len(rec.results)} results)"


@app.command()
def parse(
    path: Optional[Path] = typer.Argument(None, help="File of MI output; stdin when omitted."),
    as_json: bool = typer.Option(False, "--json", help="Print one JSON object per output."),
    strict: bool = typer.Option(False, "--strict", help="Exit with status 1 if any line fails to parse."),
    max_depth: int = typer.Option(
        mi_config.MAX_DEPTH,
        "--max-depth",
        min=1,
        max=mi_config.MAX_DEPTH_CEILING,
        help="Deepest tuple/list nesting accepted.",
    ),
) -> None:
    """Read MI output line by line and print what the parser makes of it."""
    errors = 0

    def on_batch(batch: List[Output]) -> None:
        nonlocal errors
        for out in batch:
            if out.kind is OutputKind.PARSE_ERROR:
                errors += 1
            typer.echo(json.dumps(out.to_dict()) if as_json else _describe(out))

    # raw bytes; the parser decodes them
    stream = path.open("rb") if path else typer.get_binary_stream("stdin")
    try:
        with GdbMiParser(on_batch, max_depth=max_depth) as parser:
            for line in stream:
                code = parser.push(line)
                if code is not OutcomeCode.OK:
                    typer.echo(f"parser failed: {code.value}", err=True)
                    raise typer.Exit(2)
    finally:
        if path:
            stream.close()

    if strict and errors:
        typer.echo(f"{errors} line(s) failed to parse", err=True)
        raise typer.Exit(1)


@app.command()
def serve(
    host: str = typer.Option(mi_config.HOST, help="Interface to bind."),
    port: int = typer.Option(mi_config.PORT, help="Port to listen on."),
) -> None:
    """Run the HTTP parsing service."""
    from app import app as flask_app

    flask_app.run(host=host, port=port)


if __name__ == "__main__":
    app()
