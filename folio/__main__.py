"""Allow `python -m folio <command>`."""

from folio.cli.main import main


raise SystemExit(main())
