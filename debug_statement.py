"""
Debug script to show what each extraction stage sees for a statement file.

Usage: python debug_statement.py <file> [media_type]
"""
import sys
import mimetypes

from backend.extraction.extract import tokenize
from backend.extraction.providers import ProviderChain
from backend.extraction.schema import RawDocument
from backend.extraction.table import classify_layout, reconstruct_table
from backend.extraction.transform import ExtractionContext, regex_parse, structured_header_parse


def main(path, media_type=None):
    media_type = media_type or mimetypes.guess_type(path)[0] or "application/pdf"
    with open(path, "rb") as f:
        document = RawDocument(content=f.read(), media_type=media_type, filename=path)

    stream = tokenize(document)
    print(f"Pages: {len(stream.pages)}  Lines: {len(stream.lines)}")

    print(f"\n--- Raw Text (first 30 lines) ---")
    for i, line in enumerate(stream.lines[:30]):
        print(f"[{i}] {line}")

    layout = classify_layout(stream)
    print(f"\nLayout: {layout.kind.value}  Header: {layout.header!r}")

    table = reconstruct_table(stream)
    if table:
        print(f"\n--- Logical Table ({len(table.rows)} rows, first 10) ---")
        print(table.render(table.rows[:10]))

    ctx = ExtractionContext(stream=stream, layout=layout, table=table)
    for name, strategy in [("structured", structured_header_parse), ("regex", regex_parse)]:
        candidates = strategy(ctx) or []
        print(f"\n--- Strategy '{name}': {len(candidates)} candidates ---")
        for tx in candidates[:15]:
            flags = f"  {tx['flags']}" if tx["flags"] else ""
            print(f"{tx['date']:>12}  {tx['amount']:>12.2f}  {tx['direction']:<8} {tx['description'][:50]}{flags}")

    providers = ProviderChain.from_config().providers
    print(f"\nConfigured providers: {[p.name for p in providers] or 'none'}")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    main(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None)
