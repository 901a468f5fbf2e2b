from hayagriva_llm.cli import main

raise SystemExit(main())
