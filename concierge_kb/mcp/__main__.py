from concierge_kb.mcp.server import main

main()
