"""Allow running the plugin with ``python -m hostlocal``."""

from hostlocal.cli.main import run

if __name__ == "__main__":
    run()
