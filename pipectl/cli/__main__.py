#!/usr/bin/env python3
"""Entry point for pipectl CLI when run as python -m pipectl.cli."""

if __name__ == "__main__":
    from pipectl.cli.main import main

    main()
