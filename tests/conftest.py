"""
Test configuration for the cover service tests.

Every test mocks the network: no real provider is ever contacted.
"""

import os
import sys

# Ensure parent directory is in path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
