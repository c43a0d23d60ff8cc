"""Allow ``python -m sessionlore``."""

import sys

from sessionlore.cli import main

sys.exit(main())
