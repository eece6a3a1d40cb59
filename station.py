#!/usr/bin/env python3
"""Setup and run script for the environmental telemetry node.

Works on any host with Python 3.10+; the node command additionally needs a
Raspberry Pi with the sensors wired (install with --pi for RPi.GPIO).

Usage:
    python station.py setup [--pi]   Create venv and install the package
    python station.py node           Start the acquisition node (supervised)
    python station.py store          Start the telemetry store server
    python station.py forecast       Ask a running store to run a forecast
    python station.py test           Run backend tests
    python station.py clean          Remove venv and caches
    python station.py status         Check installation state
"""

import argparse
import os
import shutil
import subprocess
import sys
import textwrap
import venv
from pathlib import Path

# ---------------------------------------------------------------------------
# Platform detection and paths
# ---------------------------------------------------------------------------

IS_WINDOWS = sys.platform == "win32"
ROOT = Path(__file__).resolve().parent
BACKEND_DIR = ROOT / "backend"
VENV_DIR = ROOT / ".venv"

if IS_WINDOWS:
    VENV_PYTHON = VENV_DIR / "Scripts" / "python.exe"
    VENV_PIP = VENV_DIR / "Scripts" / "pip.exe"
else:
    VENV_PYTHON = VENV_DIR / "bin" / "python"
    VENV_PIP = VENV_DIR / "bin" / "pip"

MIN_PYTHON = (3, 10)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def heading(msg: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"  {msg}")
    print(f"{'=' * 60}\n")


def step(msg: str) -> None:
    print(f"  -> {msg}")


def ok(msg: str) -> None:
    print(f"  [OK] {msg}")


def warn(msg: str) -> None:
    print(f"  [!!] {msg}")


def fail(msg: str) -> None:
    print(f"  [FAIL] {msg}", file=sys.stderr)


def run_cmd(
    cmd: list[str],
    cwd: Path | None = None,
    env: dict | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess:
    kwargs: dict = {
        "cwd": str(cwd) if cwd else None,
        "check": check,
    }
    if env:
        kwargs["env"] = {**os.environ, **env}
    return subprocess.run(cmd, **kwargs)


def require_venv() -> bool:
    if VENV_PYTHON.exists():
        return True
    fail("Virtual environment not found. Run:  python station.py setup")
    return False


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_setup(args: argparse.Namespace) -> int:
    """Create the venv and install the package with dev (and optionally pi) extras."""
    v = sys.version_info
    if v < MIN_PYTHON:
        fail(f"Python {v.major}.{v.minor} found, need {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+")
        return 1

    heading("Creating Python virtual environment")
    if VENV_PYTHON.exists():
        ok(f"venv already exists at {VENV_DIR}")
    else:
        step(f"Creating venv in {VENV_DIR}")
        venv.create(str(VENV_DIR), with_pip=True)
        ok("venv created")

    heading("Installing Python dependencies")
    extras = "dev,pi" if args.pi else "dev"
    run_cmd([str(VENV_PIP), "install", "--upgrade", "pip"])
    step(f"Installing telemetry-node with [{extras}] extras")
    run_cmd([str(VENV_PIP), "install", "-e", f"{ROOT}[{extras}]"])
    ok("Python dependencies installed")

    env_file = ROOT / ".env"
    env_example = ROOT / ".env.example"
    if not env_file.exists() and env_example.exists():
        shutil.copy2(env_example, env_file)
        ok(f"Created {env_file}")

    heading("Setup complete")
    print(textwrap.dedent("""\
        Next steps:
          1. Edit .env with the upload URL, pins and network connection
          2. On the node:   python station.py node
          3. On the store:  python station.py store
    """))
    return 0


def cmd_node(_args: argparse.Namespace) -> int:
    """Run the acquisition node under its watchdog supervisor."""
    if not require_venv():
        return 1
    heading("Starting telemetry node")
    step("Press Ctrl+C to stop\n")
    return run_cmd(
        [str(VENV_PYTHON), str(BACKEND_DIR / "node_main.py")],
        cwd=BACKEND_DIR,
        check=False,
    ).returncode


def cmd_store(args: argparse.Namespace) -> int:
    """Start the store API server."""
    if not require_venv():
        return 1
    heading("Starting telemetry store")
    step(f"Server at http://{args.host}:{args.port}")
    return run_cmd(
        [str(VENV_PYTHON), "-m", "uvicorn", "telemetry.main:app",
         "--host", args.host, "--port", str(args.port), "--log-level", "info"],
        cwd=BACKEND_DIR,
        check=False,
    ).returncode


def cmd_forecast(args: argparse.Namespace) -> int:
    """Trigger a forecast run on a store and print the outcome."""
    if not require_venv():
        return 1
    script = (
        "import sys, httpx\n"
        "r = httpx.post(sys.argv[1] + '/api/forecast/run', timeout=60)\n"
        "print(r.status_code, r.text[:2000])\n"
        "sys.exit(0 if r.status_code == 200 else 1)\n"
    )
    return run_cmd([str(VENV_PYTHON), "-c", script, args.url], check=False).returncode


def cmd_test(_args: argparse.Namespace) -> int:
    """Run backend tests."""
    if not require_venv():
        return 1
    heading("Running backend tests")
    return run_cmd(
        [str(VENV_PYTHON), "-m", "pytest", str(ROOT / "tests" / "backend"), "-v"],
        cwd=ROOT,
        check=False,
    ).returncode


def cmd_clean(_args: argparse.Namespace) -> int:
    """Remove venv and caches."""
    heading("Cleaning build artifacts")
    if VENV_DIR.exists():
        step(f"Removing {VENV_DIR.relative_to(ROOT)}")
        shutil.rmtree(VENV_DIR)

    for pattern in ("__pycache__", ".pytest_cache", "*.egg-info"):
        for d in ROOT.rglob(pattern):
            if d.is_dir():
                step(f"Removing {d.relative_to(ROOT)}")
                shutil.rmtree(d)

    ok("Clean complete")
    return 0


def cmd_status(_args: argparse.Namespace) -> int:
    """Check installation state."""
    heading("Installation status")

    v = sys.version_info
    ok(f"Python {v.major}.{v.minor}.{v.micro}")

    if VENV_PYTHON.exists():
        ok(f"Python venv: {VENV_DIR}")
    else:
        warn("Python venv: not created")

    env_file = ROOT / ".env"
    if env_file.exists():
        ok(f".env file: {env_file}")
    else:
        warn(".env file: not created (will use defaults)")

    if Path("/sys/class/i2c-adapter").exists():
        ok("I2C adapters present")
    else:
        warn("No I2C adapters (sensors unavailable on this host)")

    db_files = list(ROOT.glob("*.db"))
    if db_files:
        for db in db_files:
            ok(f"Database: {db}")
    else:
        step("Database: will be created when the store first runs")

    return 0


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="station.py",
        description="Environmental telemetry node: setup and launcher",
    )
    sub = parser.add_subparsers(dest="command")

    p_setup = sub.add_parser("setup", help="Create venv and install the package")
    p_setup.add_argument("--pi", action="store_true", help="Also install RPi.GPIO")
    sub.add_parser("node", help="Start the acquisition node")
    p_store = sub.add_parser("store", help="Start the telemetry store server")
    p_store.add_argument("--host", default="0.0.0.0")
    p_store.add_argument("--port", type=int, default=8000)
    p_forecast = sub.add_parser("forecast", help="Run a forecast on a store")
    p_forecast.add_argument("--url", default="http://localhost:8000")
    sub.add_parser("test", help="Run backend tests")
    sub.add_parser("clean", help="Remove venv and caches")
    sub.add_parser("status", help="Check installation state")

    args = parser.parse_args()

    commands = {
        "setup": cmd_setup,
        "node": cmd_node,
        "store": cmd_store,
        "forecast": cmd_forecast,
        "test": cmd_test,
        "clean": cmd_clean,
        "status": cmd_status,
    }

    if args.command is None:
        parser.print_help()
        return 0

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
