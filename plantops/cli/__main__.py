"""Allow ``python -m plantops.cli`` execution."""

import sys

from plantops.cli.ingest import main

sys.exit(main())
