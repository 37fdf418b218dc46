# File: fleet_tracker/main.py
"""
Fleet Tracking System - Main Application Entry Point

Usage:
    python -m fleet_tracker.main demo
    python -m fleet_tracker.main --seed nearby -36.8662 174.7721 --radius 2
    FLEET_REPOSITORY_BACKEND=mongo FLEET_SECRET_MONGO_URL=mongodb://localhost:27017 \
        python -m fleet_tracker.main simulate --ticks 10
"""

import sys

from .presentation.cli import main


if __name__ == "__main__":
    sys.exit(main())
