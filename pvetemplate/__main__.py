"""Allow ``python -m pvetemplate``."""

import sys

from pvetemplate.cli import main

sys.exit(main())
