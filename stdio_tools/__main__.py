"""python -m stdio_tools <tool> [flags]"""

import sys

from .cli import dispatch

sys.exit(dispatch())
