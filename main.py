from __future__ import annotations

import sys

from w365_provisioner.cli import main


if __name__ == "__main__":
    sys.exit(main())
