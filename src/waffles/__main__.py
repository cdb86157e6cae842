"""Entry point for running Waffles as a module.

Usage:
    python -m waffles [command] [options]

Example:
    python -m waffles run "review error handling"
    python -m waffles check
"""

from waffles.cli import app

if __name__ == "__main__":
    app()
