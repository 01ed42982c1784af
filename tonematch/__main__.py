"""Entry point for `python -m tonematch`."""

import sys

from .cli import main

sys.exit(main())
