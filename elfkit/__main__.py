"""Allow ``python -m elfkit``."""

from elfkit.cli import main

main()
