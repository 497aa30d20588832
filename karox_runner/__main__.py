import sys

from karox_runner.cli import main

sys.exit(main())
