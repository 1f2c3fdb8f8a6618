"""Script to launch the Discord → Nostr bridge."""

from __future__ import annotations

import os
import sys

# Ensure src/ is on sys.path (so imports work when run from a checkout)
SRC_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from nostr_bridge.runner import main  # noqa: E402


if __name__ == "__main__":
    sys.exit(main())
