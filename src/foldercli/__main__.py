import sys

from foldercli.cli._dispatcher import main

sys.exit(main())
