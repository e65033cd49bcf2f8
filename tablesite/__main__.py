"""Allow ``python -m tablesite``."""

from tablesite.cli import main

raise SystemExit(main())
