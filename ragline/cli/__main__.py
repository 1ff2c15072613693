"""Allow ``python -m ragline.cli`` execution."""

import sys

from ragline.cli.sync import main

sys.exit(main())
