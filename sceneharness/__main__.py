import sys

from .run_itests import main

sys.exit(main())
