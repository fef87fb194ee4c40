from quaketelop.main import main

raise SystemExit(main())
