"""Allow running as: python -m rstyle"""

import sys

from rstyle.cli import main

sys.exit(main())
