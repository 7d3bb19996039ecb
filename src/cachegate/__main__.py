"""Allow ``python -m cachegate``."""

from cachegate.app import main

main()
