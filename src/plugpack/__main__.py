from plugpack.cli import main

raise SystemExit(main())
