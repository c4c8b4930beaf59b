"""Allow running as ``python -m skycast``."""

import sys

from skycast.main import main

sys.exit(main())
