#!/usr/bin/env python3
r"""
Signing Session Maintenance Tool

Inspect and clean up document signing sessions from the command line:
- List sessions with an optional status filter
- Show details (fields, signer, storage) for one session
- Export the original or signed PDF
- Purge sessions older than the retention window

Usage:
    cd backend
    python scripts/signing_sessions.py --list
    python scripts/signing_sessions.py --list --status signed
    python scripts/signing_sessions.py --details <token>
    python scripts/signing_sessions.py --export <token> --version signed --output signed.pdf
    python scripts/signing_sessions.py --purge --older-than-days 30
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional

# Add parent directory to path to import docsign modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from docsign.config import settings
from docsign.database import db_session, init_db
from docsign.models.signing_session import SigningSession, SigningSessionStatus
from docsign.services.maintenance_service import purge_signing_sessions, signing_session_cutoff
from docsign.services.signing_service import SigningService
from docsign.utils.exceptions import DocSignApiError


def _fmt(value) -> str:
    return value.strftime('%Y-%m-%d %H:%M:%S') if value else 'N/A'


def format_session(session: SigningSession, detailed: bool = False) -> str:
    """Format a signing session for display."""
    base_info = (
        f"Token: {session.token}\n"
        f"  File: {session.original_filename}\n"
        f"  Status: {SigningSessionStatus(session.status).display_name}\n"
        f"  Created: {_fmt(session.created_at)}\n"
        f"  Signed: {_fmt(session.signed_at)}"
    )

    if detailed:
        fields = session.fields or []
        kinds = ", ".join(f"{f.get('id') or 'legacy'}:{f.get('type')}@p{f.get('page')}" for f in fields)
        storage = session.document_path or ("inline" if session.document_base64 else "missing")
        detailed_info = (
            f"  Link: {session.link}\n"
            f"  Fields ({len(fields)}): {kinds or 'none'}\n"
            f"  Signer Email: {session.signer_email or 'N/A'}\n"
            f"  Preset: {session.preset_id or 'N/A'}\n"
            f"  Original Stored: {storage}\n"
            f"  Signed Stored: {session.signed_document_path or ('inline' if session.signed_document_base64 else 'N/A')}"
        )
        return base_info + "\n" + detailed_info

    return base_info


def list_sessions(status: Optional[str] = None, limit: int = 50) -> List[SigningSession]:
    """List signing sessions, newest first."""
    with db_session() as db:
        try:
            parsed = SigningSessionStatus(status.lower()) if status else None
        except ValueError:
            print(f"Warning: Invalid status '{status}'. Valid statuses: {[s.value for s in SigningSessionStatus]}")
            return []
        sessions, _ = SigningService(db).list_sessions(status=parsed, limit=limit)
        return sessions


def show_details(token: str) -> None:
    with db_session() as db:
        try:
            session = SigningService(db).get_session(token)
        except DocSignApiError as e:
            print(e.message)
            return
        print(format_session(session, detailed=True))


def export_document(token: str, version: str, output: Optional[str]) -> bool:
    """Write the original or signed PDF to disk."""
    with db_session() as db:
        service = SigningService(db)
        try:
            if version == "signed":
                content = service.get_signed_document(token)
            else:
                content = service.get_original_document(token)
        except DocSignApiError as e:
            print(f"\n✗ {e.message}")
            return False

    destination = Path(output or f"{token}_{version}.pdf")
    destination.write_bytes(content)
    print(f"\n✓ Wrote {len(content)} bytes to {destination}")
    return True


def purge(older_than_days: Optional[int], confirm: bool = True) -> int:
    """Delete sessions older than the retention window."""
    days = older_than_days if older_than_days is not None else settings.signing_session_max_age_days
    cutoff = signing_session_cutoff(max_age_days=days)

    with db_session() as db:
        count = db.query(SigningSession).filter(SigningSession.created_at < cutoff).count()
        if count == 0:
            print(f"No signing sessions created before {_fmt(cutoff)}.")
            return 0

        if confirm:
            print("\n" + "="*60)
            print("SIGNING SESSION PURGE")
            print("="*60)
            print(f"Sessions created before {_fmt(cutoff)}: {count}")
            print("="*60)
            response = input("\nDelete these sessions and their documents? (yes/no): ").strip().lower()
            if response not in ("yes", "y"):
                print("Purge cancelled.")
                return 0

        deleted = purge_signing_sessions(db, max_age_days=days)
        print(f"\n✓ Deleted {deleted} signing session(s)")
        return deleted


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Signing Session Maintenance Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/signing_sessions.py --list
  python scripts/signing_sessions.py --list --status pending
  python scripts/signing_sessions.py --details 3f2c...
  python scripts/signing_sessions.py --export 3f2c... --version signed
  python scripts/signing_sessions.py --purge --older-than-days 30 --no-confirm
        """
    )

    parser.add_argument("--list", action="store_true", help="List signing sessions")
    parser.add_argument("--status", type=str, help="Filter by status (pending or signed)")
    parser.add_argument("--details", type=str, metavar="TOKEN", help="Show detailed info for one session")
    parser.add_argument("--export", type=str, metavar="TOKEN", help="Write a session's PDF to disk")
    parser.add_argument("--version", choices=["original", "signed"], default="original",
                       help="Which PDF to export (default: original)")
    parser.add_argument("--output", type=str, help="Output path for --export")
    parser.add_argument("--purge", action="store_true", help="Delete sessions older than the retention window")
    parser.add_argument("--older-than-days", type=int, help="Retention window for --purge")
    parser.add_argument("--init-db", action="store_true", help="Create missing tables")

    parser.add_argument("--limit", type=int, default=50, help="Limit for listing (default: 50)")
    parser.add_argument("--no-confirm", action="store_true", help="Skip confirmation prompts")
    parser.add_argument("--detailed", action="store_true", help="Show detailed session information")

    args = parser.parse_args()

    if len(sys.argv) == 1:
        parser.print_help()
        return

    if args.init_db:
        init_db()
        print("✓ Tables created")

    if args.list or args.status:
        sessions = list_sessions(status=args.status, limit=args.limit)
        if not sessions:
            print("No signing sessions found.")
        else:
            print(f"\nFound {len(sessions)} signing sessions:\n")
            for i, session in enumerate(sessions, 1):
                print(f"{i}. {format_session(session, args.detailed)}\n")
        return

    if args.details:
        show_details(args.details)
        return

    if args.export:
        export_document(args.export, args.version, args.output)
        return

    if args.purge:
        purge(args.older_than_days, confirm=not args.no_confirm)
        return


if __name__ == "__main__":
    main()
