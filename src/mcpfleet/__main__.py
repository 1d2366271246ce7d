# Entry point for python -m mcpfleet
import sys

from mcpfleet.cli import main

if __name__ == "__main__":
    sys.exit(main())
