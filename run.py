"""
PocketBeat - Main Entry Point
Run this script to start the drum machine, or
`python run.py render OUT.wav [options]` to bounce the pattern offline
"""

import sys
import os

# Add the project root to the path
project_root = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, project_root)


if __name__ == '__main__':
    if len(sys.argv) > 1 and sys.argv[1] == 'render':
        from pocketbeat.export import main as render_main
        sys.exit(render_main(sys.argv[2:]))

    from gui.main_window import main
    main()
