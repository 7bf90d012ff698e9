import sys

from logfwrd.cli import main

sys.exit(main())
