from sjr.cli import main

raise SystemExit(main())
