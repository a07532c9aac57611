"""Allow running archlens as a module: python -m archlens."""

from archlens.cli import app

if __name__ == "__main__":
    app()
