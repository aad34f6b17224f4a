"""twofa CLI: unified entry point.

Usage:
    python -m twofa                 # Codes for every account
    python -m twofa add github      # Add an account (prompts for the key)
    python -m twofa list            # List account names
    python -m twofa show github     # Live code with countdown
"""

from twofa.cli import main

if __name__ == "__main__":
    main()
