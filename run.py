#!/usr/bin/env python3
"""Convenience runner for the track recorder CLI.

Usage:
    python run.py list
"""
import sys

from track_recorder.main import main

if __name__ == "__main__":
    sys.exit(main())
