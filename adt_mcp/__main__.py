"""Allow ``python -m adt_mcp``."""

from adt_mcp.server import main

main()
