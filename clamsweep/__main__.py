from clamsweep.cli import main

raise SystemExit(main())
