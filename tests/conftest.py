"""Shared test configuration: put the repository root (ictus/, ictus_cli.py) on sys.path."""
import os
import sys

_HERE = os.path.dirname(os.path.abspath(__file__))
_ROOT = os.path.abspath(os.path.join(_HERE, ".."))

if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)
