from clogwench.cli import main

raise SystemExit(main())
