#!/usr/bin/env python3
"""
Ticket scan command-line tool
Parse a boarding pass photo, or look up airport codes in the directory
"""

import json
import mimetypes
import sys
from pathlib import Path

from mappings import search_airport_code, search_by_name
from models import RawImage


def print_separator(char="=", length=70):
    """Print a separator line"""
    print(char * length)


def print_header(text):
    """Print a formatted header"""
    print_separator()
    print(f"  {text}")
    print_separator()


def display_airport_info(result):
    if not result['exists']:
        print(f"❌ {result['code']}: {result['error']}")
        return
    print(f"✅ {result['code']}: {result['name']}")
    if 'warning' in result:
        print(f"   ⚠️  {result['warning']}")


def scan_file(path, as_json=False):
    """Run the full pipeline over one image file"""
    from ocr import build_ticket_parser
    from ticket_parser import DebugCollector

    image_path = Path(path)
    if not image_path.is_file():
        print(f"❌ File not found: {path}")
        return 1

    mime, _ = mimetypes.guess_type(image_path.name)
    image = RawImage(data=image_path.read_bytes(), mime_type=mime or "application/octet-stream")
    dbg = DebugCollector(enabled=not as_json)
    parser = build_ticket_parser()
    try:
        ticket = parser.parse(image, debug=dbg)
    finally:
        parser.close()

    if as_json:
        print(json.dumps(ticket.to_dict(), indent=2))
        return 0

    print_header(f"TICKET: {image_path.name}")
    print(f"   From:   {ticket.origin or '-'} {f'({ticket.origin_code})' if ticket.origin_code else ''}")
    print(f"   To:     {ticket.destination or '-'} {f'({ticket.destination_code})' if ticket.destination_code else ''}")
    print(f"   Date:   {ticket.departure_date}")
    print(f"   Source: {ticket.source}")
    print_separator("-")
    for step in dbg.steps:
        print(f"   · {step}")
    return 0


def command_line(argv=None):
    argv = list(sys.argv[1:] if argv is None else argv)

    if not argv:
        print("Usage: python air.py <TICKET_IMAGE> [--json]")
        print("   Or: python air.py --lookup <CODE>[,<CODE>...]")
        print("   Or: python air.py --search <CITY OR COUNTRY>")
        print("\nExamples:")
        print("  python air.py boarding_pass.jpg")
        print("  python air.py --lookup JFK,LHR,TGU")
        print("  python air.py --search Honduras")
        return 1

    arg = argv[0]

    if arg == '--lookup':
        if len(argv) < 2:
            print("❌ Please provide at least one code")
            return 1
        for code in ','.join(argv[1:]).split(','):
            if code.strip():
                display_airport_info(search_airport_code(code))
        return 0

    if arg == '--search':
        if len(argv) < 2:
            print("❌ Please provide a search term")
            return 1
        search_term = ' '.join(argv[1:])
        matches = search_by_name(search_term)
        if not matches:
            print(f"No airports found matching '{search_term}'")
            return 1
        for airport in matches:
            print(f"{airport['code']}: {airport['name']}")
        return 0

    return scan_file(arg, as_json='--json' in argv[1:])


if __name__ == "__main__":
    sys.exit(command_line())
