from readme_forge.cli import main

raise SystemExit(main())
