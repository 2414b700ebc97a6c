"""
Server entry point.

    python -m pccserver 5555

Python looks for __main__.py when a package is run with ``-m``.
"""

from .cli import run_server


if __name__ == "__main__":
    run_server()
