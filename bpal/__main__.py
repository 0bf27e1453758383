import sys

from bpal.bpal import main

sys.exit(main())
