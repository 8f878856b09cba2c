#!/usr/bin/env python

"""
Main entry point for ldbear when run as a module.
Allows executing with: python -m ldbear
"""

from ldbear import app

if __name__ == "__main__":
    app()
