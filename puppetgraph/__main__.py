"""
Executable module for puppetgraph.

Running::

    python -m puppetgraph

is equivalent to running the ``puppetgraph`` console script.
"""

from __future__ import annotations

import sys

from puppetgraph.cli import main

if __name__ == "__main__":
    sys.exit(main())
