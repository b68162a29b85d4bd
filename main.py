#!/usr/bin/env python3
"""
Rancher Service Blue/Green Upgrader

Upgrades one Rancher service to a new image tag, optionally runs a
verification command, then finishes the upgrade or rolls it back.
Configuration is read from environment variables; see README or
`python3 main.py --help`.

Runs straight from a source checkout by putting `src/` on sys.path.
Installed copies should use the `rancher-upgrader` console script.
"""

import os
import sys

REPO_ROOT = os.path.dirname(os.path.abspath(__file__))
SRC_PATH = os.path.join(REPO_ROOT, "src")
if SRC_PATH not in sys.path:
    sys.path.insert(0, SRC_PATH)

from cli import main

if __name__ == "__main__":
    sys.exit(main())
