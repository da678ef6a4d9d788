"""
wchartag Module Entry Point
============================

Allows running the wchartag CLI via: python -m wchartag
"""

from wchartag.cli import main

if __name__ == "__main__":
    main()
