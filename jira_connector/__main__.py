from jira_connector.cli import main

raise SystemExit(main())
