#!/usr/bin/env python3
"""
Command line entry point

    python main.py generate photo.jpg --style Ghibli
"""
from filter_client.cli import app

if __name__ == "__main__":
    app()
