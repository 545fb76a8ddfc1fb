"""Allow ``python -m rag_ingest``."""

import sys

from rag_ingest.runner import main

sys.exit(main())
