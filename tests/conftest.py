import os
import sys

# Ensure tools is on path for test imports
ROOT = os.path.dirname(os.path.dirname(__file__))
TOOLS = os.path.join(ROOT, 'tools')
if TOOLS not in sys.path:
    sys.path.insert(0, TOOLS)
