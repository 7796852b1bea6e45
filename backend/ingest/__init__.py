"""
Spreadsheet ingestion package.

Turns raw warehouse MIS workbooks into validated fact rows:
  - coercion.py  tolerant number / date coercion, blank-row detection
  - schemas.py   pydantic row shapes for inbound and outbound facts
  - columns.py   header alias tables per canonical field
  - parser.py    sheet lookup, column mapping, valid / rejected split

Usage:
    from ingest.parser import parse_outbound

    result = parse_outbound(content)
    result.valid_rows     # list[OutboundRow]
    result.rejected_rows  # list[RejectedRowRecord]
"""
