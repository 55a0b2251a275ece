#!/usr/bin/env python3

import sys

from .server import main as server_main


def main():
    """Entry point for the convertpro command."""
    return server_main()


if __name__ == "__main__":
    sys.exit(main())
