from kproc.cli import main

raise SystemExit(main())
