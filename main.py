#!/usr/bin/env python3
"""
Main entry point for the Vimeo thumbnail proxy CLI
"""

import sys

from vimeo_thumb.cli import main

if __name__ == "__main__":
    sys.exit(main())
