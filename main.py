#main.py

"""
XML Watcher - webhook notifications for new XML files
"""
import sys
from pathlib import Path

# Allow running from a source checkout without installing
sys.path.insert(0, str(Path(__file__).parent))

from xmlwatcher.main import run

if __name__ == "__main__":
    run()
