"""python -m arogya_edge"""
from __future__ import annotations

import sys

from arogya_edge.config import get_settings
from arogya_edge.server import Supervisor


def main() -> None:
    sys.exit(Supervisor(get_settings()).run())


if __name__ == "__main__":
    main()
