"""
Pytest configuration file.

Puts the repository root on the path so the tests can import
ec2_rotating_imager without installing it.
"""
import sys
from pathlib import Path

_root_dir_abs = str(Path(__file__).parent.parent.absolute())
if _root_dir_abs not in sys.path:
    sys.path.insert(0, _root_dir_abs)
