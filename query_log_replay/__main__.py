from query_log_replay.cli import main

raise SystemExit(main())
