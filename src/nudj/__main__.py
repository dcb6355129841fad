import sys

from nudj.cli import main

sys.exit(main())
