"""CLI entrypoint for the hologram pyramid tools."""

import sys

from hologram_pyramid.cli import main


if __name__ == "__main__":
    sys.exit(main())
