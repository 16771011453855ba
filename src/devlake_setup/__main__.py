"""Entry point for running devlake-setup as a module: python -m devlake_setup"""

from devlake_setup.cli import app

if __name__ == "__main__":
    app()
