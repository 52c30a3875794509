"""
Command Line Interface for the Community Issue Tracker.
"""

from typing import List, Optional

import httpx
import typer
import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import print as rprint

from ..auth import AuthorityService
from ..config import get_settings
from ..db.base import get_session_local, init_database
from ..issues.cache import get_listing_cache
from ..issues.lifecycle import IssueLifecycleEngine
from ..issues.schemas import Issue, IssueBucket, Role
from ..issues.uploads import get_image_uploader
from ..logging import configure_logging

app = typer.Typer(help="Community Issue Tracker - resident maintenance issues")
console = Console()

BUCKET_STYLES = {
    IssueBucket.NOT_CONFIRMED: "yellow",
    IssueBucket.CONFIRMED_NOT_CLOSED: "cyan",
    IssueBucket.CLOSED: "green",
}


def _engine(db) -> IssueLifecycleEngine:
    settings = get_settings()
    return IssueLifecycleEngine(
        db,
        get_listing_cache(),
        get_image_uploader(),
        upload_timeout=settings.upload_timeout_seconds,
        max_content_length=settings.max_content_length,
    )


def _api_client(api_url: Optional[str]) -> httpx.Client:
    return httpx.Client(base_url=api_url or get_settings().api_url, timeout=10.0)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        return detail.get("message", detail.get("error", ""))
    return str(detail) if detail else f"HTTP {response.status_code}"


def _transition(action: str, issue_id: int, as_user: str, api_url: Optional[str]) -> None:
    """POST a state transition to the running API.

    Going through the API keeps its listing cache consistent with the write.
    """
    client = _api_client(api_url)
    try:
        response = client.post(
            f"/issues/{action}/{issue_id}", headers={"X-Username": as_user}
        )
    except httpx.RequestError as e:
        console.print(f"❌ Could not reach the API: {e}")
        raise typer.Exit(code=1)
    finally:
        client.close()

    if response.status_code != 200:
        console.print(f"❌ {_error_message(response)}")
        raise typer.Exit(code=1)


def _issues_table(issues: List[Issue]) -> Table:
    table = Table(title="Issues")
    table.add_column("ID", justify="right")
    table.add_column("Bucket")
    table.add_column("Reporter")
    table.add_column("Reported")
    table.add_column("Closed")
    table.add_column("Images", justify="right")
    table.add_column("Content")

    for issue in issues:
        table.add_row(
            str(issue.id),
            f"[{BUCKET_STYLES[issue.bucket]}]{issue.bucket.value}[/]",
            issue.reporter,
            issue.report_date.isoformat(),
            issue.closed_date.isoformat() if issue.closed_date else "-",
            str(len(issue.images)),
            issue.content if len(issue.content) <= 60 else issue.content[:57] + "...",
        )
    return table


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    dev: bool = typer.Option(False, help="Run in development mode with reload"),
):
    """Start the API server."""
    settings = get_settings()
    rprint(Panel.fit(f"🏘️ Starting {settings.app_name}", style="bold blue"))
    uvicorn.run(
        "community_issues.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=dev,
        workers=1 if dev else settings.api_workers,
    )


@app.command("init-db")
def init_db():
    """Create database tables."""
    configure_logging()
    init_database()
    console.print("✅ Database initialized")


@app.command()
def grant(
    username: str = typer.Argument(..., help="User to grant the role to"),
    role: Role = typer.Argument(..., help="ROLE_RESIDENT or ROLE_HOST"),
):
    """Grant a role to a user."""
    db = get_session_local()()
    try:
        AuthorityService(db).grant(username, role)
    finally:
        db.close()
    console.print(f"✅ {username} is now {role.value}")


@app.command("list")
def list_issues(
    resident: Optional[str] = typer.Option(None, help="Only this resident's issues"),
):
    """List issues in bucket order."""
    db = get_session_local()()
    try:
        engine = _engine(db)
        issues = engine.list_for_resident(resident) if resident else engine.list_all()
    finally:
        db.close()

    if not issues:
        console.print("No issues found")
        return
    console.print(_issues_table(issues))


@app.command()
def confirm(
    issue_id: int = typer.Argument(..., help="Issue to confirm"),
    as_user: str = typer.Option(..., "--as", help="Host performing the action"),
    api_url: Optional[str] = typer.Option(None, help="API base URL (defaults to API_URL)"),
):
    """Confirm an issue through the running API."""
    _transition("confirm", issue_id, as_user, api_url)
    console.print(f"✅ Issue {issue_id} confirmed")


@app.command()
def close(
    issue_id: int = typer.Argument(..., help="Issue to close"),
    as_user: str = typer.Option(..., "--as", help="Host performing the action"),
    api_url: Optional[str] = typer.Option(None, help="API base URL (defaults to API_URL)"),
):
    """Close a confirmed issue through the running API."""
    _transition("close", issue_id, as_user, api_url)
    console.print(f"✅ Issue {issue_id} closed")


if __name__ == "__main__":
    app()
