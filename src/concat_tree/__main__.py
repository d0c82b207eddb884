from concat_tree.cli import main

raise SystemExit(main())
