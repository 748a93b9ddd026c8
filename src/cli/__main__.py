"""Allow ``python -m src.cli`` execution (delegates to the documents CLI)."""

import sys

from src.cli.documents import main

sys.exit(main())
