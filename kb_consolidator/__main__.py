import sys

from kb_consolidator.cli import main

sys.exit(main())
