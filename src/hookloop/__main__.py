"""
Main entry point for hookloop when run as a module.

Allows execution via: python -m hookloop

hookloop/src/hookloop/__main__.py
"""

from .cli import main

if __name__ == "__main__":
    main()
