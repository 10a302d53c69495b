"""
Entry point for ``python -m sitterforge``.
"""

from .cli import main

if __name__ == "__main__":
    main()
