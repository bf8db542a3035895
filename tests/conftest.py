import sys
import os

# backend/ and scripts/ use flat sibling imports; expose both to the tests
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "scripts"))
