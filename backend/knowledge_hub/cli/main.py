"""CLI entrypoint for Knowledge Hub."""

from __future__ import annotations

import json
import mimetypes
import os
from pathlib import Path
from typing import List, Optional

import requests
import typer

app = typer.Typer(name="khub", help="Knowledge Hub command-line interface")
documents_app = typer.Typer(name="documents", help="Manage indexed documents")
app.add_typer(documents_app, name="documents")

DEFAULT_HOST = "http://127.0.0.1:8000"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("KHUB_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, timeout: float = 60, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    try:
        resp = requests.request(method, url, timeout=timeout, **kwargs)
    except requests.RequestException as exc:
        typer.echo(f"Could not reach {base}: {exc}", err=True)
        raise typer.Exit(code=1)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


@app.command()
def upload(
    paths: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Files to index"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Upload files to the knowledge base."""
    files = [
        ("files", (path.name, path.read_bytes(), mimetypes.guess_type(path.name)[0] or "application/octet-stream"))
        for path in paths
    ]
    resp = _request("POST", "/rag/upload", host=host, files=files, timeout=300)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def query(
    q: str = typer.Argument(..., help="Query text"),
    k: int = typer.Option(5, "--k", help="Number of results to return"),
    context: bool = typer.Option(False, "--context", help="Include the assembled prompt context"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Semantic search over indexed documents."""
    payload: dict[str, object] = {"query": q, "top_k": k, "include_context": context}
    resp = _request("POST", "/rag/query", host=host, json=payload)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def research(
    question: str = typer.Argument(..., help="Research question"),
    max_sub_questions: Optional[int] = typer.Option(None, "--max-sub-questions", help="Upper bound on sub-questions"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Run a DeepSearch research query and print the report."""
    payload: dict[str, object] = {"question": question}
    if max_sub_questions is not None:
        payload["max_sub_questions"] = max_sub_questions
    resp = _request("POST", "/deepsearch", host=host, json=payload, timeout=600)
    body = resp.json()
    typer.echo(body.get("synthesis") or "")
    _print_sources(body.get("citations") or [])


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    model: Optional[str] = typer.Option(None, "--model", help="Search model override"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Ask the online search model a single question."""
    payload: dict[str, object] = {"query": query}
    if model:
        payload["model"] = model
    body = _request("POST", "/search", host=host, json=payload, timeout=120).json()
    typer.echo(body.get("content") or "")
    _print_sources(body.get("citations") or [])


def _print_sources(citations: list[dict]) -> None:
    if not citations:
        return
    typer.echo("\nSources:")
    for number, citation in enumerate(citations, start=1):
        typer.echo(f"  [{number}] {citation['url']}")


@app.command()
def transcribe(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Audio file"),
    language: Optional[str] = typer.Option(None, "--language", help="ISO language hint"),
    index: bool = typer.Option(False, "--index", help="Also index the transcript"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Transcribe an audio file."""
    data: dict[str, str] = {"index": str(index).lower()}
    if language:
        data["language"] = language
    content_type = mimetypes.guess_type(path.name)[0] or "audio/webm"
    resp = _request(
        "POST",
        "/audio/transcribe",
        host=host,
        data=data,
        files={"file": (path.name, path.read_bytes(), content_type)},
        timeout=300,
    )
    typer.echo(json.dumps(resp.json(), indent=2))


@documents_app.command("list")
def list_documents(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """List indexed documents."""
    resp = _request("GET", "/rag/documents", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@documents_app.command("remove")
def remove_document(
    document_id: str = typer.Argument(..., help="Document identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Remove a document and its chunks."""
    resp = _request("DELETE", f"/rag/documents/{document_id}", host=host)
    typer.echo(json.dumps(resp.json()))


if __name__ == "__main__":
    app()
