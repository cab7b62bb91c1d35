#!/usr/bin/env python3
"""Launcher for the CoinTrack dashboard.

Streamlit is started from the cointrack directory so it discovers the
pages/ subdirectory automatically.
"""

import os
import subprocess
import sys
from pathlib import Path

project_root = Path(__file__).parent.resolve()
app_dir = project_root / "cointrack"

if __name__ == "__main__":
    os.chdir(app_dir)
    sys.path.insert(0, str(project_root))
    subprocess.run([
        sys.executable, "-m", "streamlit", "run",
        "Home.py",
        *sys.argv[1:],
    ])
