import sys

from gitsnap.cli import main

sys.exit(main())
