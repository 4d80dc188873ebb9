"""
Entry point for running plyr-assistant as a module.

Usage: python -m plyr_assistant
"""

from plyr_assistant.cli import main

if __name__ == "__main__":
    main()
