# receiver/__main__.py
import sys

from receiver.cli import main

sys.exit(main())
