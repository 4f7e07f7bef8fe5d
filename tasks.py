"""Invoke tasks for WineCard development."""

import sys
from pathlib import Path

from invoke import task
from invoke.context import Context

# Must match winecard/cli/server.py
LOG_FILE = Path("data/winecard.log")


@task
def start(ctx: Context, host: str = "127.0.0.1", port: int = 8000, reload: bool = False) -> None:
    """Start the WineCard server in the foreground.

    Args:
        ctx: Invoke context
        host: Host to bind to (default: 127.0.0.1)
        port: Port to bind to (default: 8000)
        reload: Enable auto-reload for development
    """
    cmd = f"winecard-server start --host {host} --port {port} --foreground"
    if reload:
        cmd += " --reload"

    try:
        ctx.run(cmd, pty=True)
    except KeyboardInterrupt:
        print("\nServer stopped")
        sys.exit(0)


@task(name="start-background")
def start_background(ctx: Context, host: str = "127.0.0.1", port: int = 8000) -> None:
    """Start the WineCard server in the background."""
    ctx.run(f"winecard-server start --host {host} --port {port}")


@task
def stop(ctx: Context) -> None:
    """Stop the WineCard server."""
    ctx.run("winecard-server stop")


@task
def status(ctx: Context) -> None:
    """Check the status of the WineCard server."""
    ctx.run("winecard-server status")


@task
def logs(ctx: Context, follow: bool = False, lines: int = 50) -> None:
    """View the server log written in background mode.

    Args:
        ctx: Invoke context
        follow: Follow log output (like tail -f)
        lines: Number of lines to show (default: 50)
    """
    if not LOG_FILE.exists():
        print("No log file found. Server may not have been started in background mode.")
        return

    if follow:
        ctx.run(f"tail -f {LOG_FILE}", pty=True)
    else:
        ctx.run(f"tail -n {lines} {LOG_FILE}")


@task
def render(ctx: Context, draft: str, output: str = "", image: str = "") -> None:
    """Render a draft JSON file to PNG.

    Args:
        ctx: Invoke context
        draft: Path to the draft JSON file
        output: Output PNG path (default: export filename)
        image: Optional photo to embed
    """
    cmd = f"winecard-render {draft}"
    if output:
        cmd += f" -o {output}"
    if image:
        cmd += f" --image {image}"
    ctx.run(cmd)


@task
def test(ctx: Context, verbose: bool = False, coverage: bool = False) -> None:
    """Run the test suite.

    Args:
        ctx: Invoke context
        verbose: Enable verbose output
        coverage: Run with coverage report
    """
    cmd = "pytest"
    if verbose:
        cmd += " -v"
    if coverage:
        cmd += " --cov=winecard --cov-report=term-missing"
    ctx.run(cmd, pty=True)


@task
def clean(ctx: Context) -> None:
    """Clean up caches, build artifacts and rendered PNGs in the project root."""
    for pattern in ["__pycache__", "*.pyc", "*.pyo", ".pytest_cache"]:
        ctx.run(f"find . -name '{pattern}' -exec rm -rf {{}} + 2>/dev/null || true", warn=True)

    for path in ["build", "dist", "*.egg-info", ".eggs", "wine-card-*.png"]:
        ctx.run(f"rm -rf {path} 2>/dev/null || true", warn=True)

    print("Cleanup complete")
