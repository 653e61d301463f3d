"""Run the CLI with ``python -m issue_autopilot``."""

from .cli import app

if __name__ == "__main__":
    app()
