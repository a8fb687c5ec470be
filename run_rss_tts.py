#!/usr/bin/env python3
"""
RSS to Speech Command - narrate the latest articles of every configured feed
Fetches feeds, filters recent items and writes one audio file per article.
Equivalent to the `rss-tts` console script, runnable from a source checkout.
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from rss_tts.cli import main

if __name__ == '__main__':
    sys.exit(main())
