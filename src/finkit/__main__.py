import sys

from finkit.cli import main

sys.exit(main())
