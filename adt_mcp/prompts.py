"""
Server instructions sent to the client during the MCP handshake
"""

INSTRUCTIONS = """
ADT MCP server connected. Tools read from a live ABAP system through the ABAP Development Tools API.

## Finding things
- getObjects - search objects by name pattern (query, objectType, maxResults); results carry the objectURL
- getPackagesByName / getPackageObjects - browse packages
- getObjectFullPath - where an object sits in the package tree

## Reading
- getObjectStructure - metadata and URIs of the source segments
- getObjectSourceCode - source of an object (objectUrl)
- getClassComponents - methods and attributes of a class
- getDdicElementDetails - fields of a table, structure or CDS view
- getTableContent / runSqlQuery - data preview (rowNumber limits the rows)

## Navigating code
- findDefinition, getUsageReferences, getUsageReferenceSnippets, getMainPrograms

## Notes
- Object URLs look like /sap/bc/adt/oo/classes/zcl_example. Pass them exactly as returned.
- Sessions are opened on demand. Use login/logout/dropSession only to reset a stuck session.
- Every result is JSON: {"status": "success", ...} or {"error": ..., "code": ...}.
"""
