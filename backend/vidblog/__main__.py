"""CLI entry point for python -m vidblog"""
from vidblog.cli.commands import app

if __name__ == "__main__":
    app()
