"""CLI commands for authoring surfaces and inspecting delivery (Studio)."""

import argparse
import json
import sys
from pathlib import Path

from ..config.runtime import get_settings
from ..domain.errors import DeliveryError
from ..domain.surfaces import SurfaceStatus
from ..domain.visitors import VisitorRecord
from ..models.mcp_requests import EligibilityContext
from ..wiring import (
    build_authoring_service,
    build_eligibility_service,
    build_impression_service,
    build_segment_service,
    build_stores,
)
from .mcp.observability import configure_logging

# Default path to the demo workspace JSON (project root / data / demo_workspace.json)
_DEFAULT_SEED_PATH = Path(__file__).resolve().parent.parent.parent.parent / "data" / "demo_workspace.json"


def load_seed_file(path: Path) -> dict:
    """Load a workspace seed file. Exits on missing file or invalid JSON shape."""
    if not path.exists():
        print(f"Error: seed file not found: {path}", file=sys.stderr)
        print("Create data/demo_workspace.json or pass --file <path>.", file=sys.stderr)
        sys.exit(1)
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict) or "workspace_id" not in raw:
        print("Error: seed file must be an object with workspace_id, visitors, segments, surfaces.", file=sys.stderr)
        sys.exit(1)
    return raw


def seed_workspace(file_path: Path | None = None) -> dict:
    """Load visitors, segments and surfaces from a JSON file.

    Segment references inside surfaces may use the segment's ``name`` as
    ``segmentId``; they are rewritten to the generated id.
    """
    path = file_path if file_path is not None else _DEFAULT_SEED_PATH
    raw = load_seed_file(path)
    workspace_id = raw["workspace_id"]
    limit = get_settings().max_import_batch

    stores = build_stores()
    visitors = [
        VisitorRecord.model_validate({"workspaceId": workspace_id, **item})
        for item in raw.get("visitors", [])[:limit]
    ]
    for visitor in visitors:
        stores.visitors.upsert(visitor)

    segment_ids: dict[str, str] = {}
    segments = build_segment_service()
    for item in raw.get("segments", []):
        segment = segments.create(workspace_id, item["name"], item["audienceRules"])
        segment_ids[item["name"]] = segment.segment_id

    authoring = build_authoring_service()
    created = []
    for item in raw.get("surfaces", [])[:limit]:
        rules = item.get("audienceRules")
        if isinstance(rules, dict) and rules.get("segmentId") in segment_ids:
            rules = {"segmentId": segment_ids[rules["segmentId"]]}
        surface = authoring.create(
            workspace_id,
            item["kind"],
            item["name"],
            audience_rules=rules,
            schedule=item.get("schedule"),
            frequency=item.get("frequency", "once"),
            triggers=item.get("triggers"),
            priority=item.get("priority"),
            content=item.get("content"),
        )
        if item.get("status") == SurfaceStatus.active.value:
            surface = authoring.activate(workspace_id, surface.surface_id)
        created.append({"surface_id": surface.surface_id, "name": surface.name, "status": surface.status.value})
    return {
        "workspace_id": workspace_id,
        "visitors": len(visitors),
        "segments": segment_ids,
        "surfaces": created,
    }


def main():
    parser = argparse.ArgumentParser(description="Manage surfaces, segments and delivery")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    seed_parser = subparsers.add_parser("seed", help="Load a demo workspace from a JSON file")
    seed_parser.add_argument(
        "--file",
        type=Path,
        default=None,
        help=f"Path to JSON seed file (default: {_DEFAULT_SEED_PATH})",
    )

    eligible_parser = subparsers.add_parser("eligible", help="List surfaces a visitor may see")
    eligible_parser.add_argument("--workspace-id", required=True)
    eligible_parser.add_argument("--visitor-id", required=True)
    eligible_parser.add_argument("--kind", default=None, help="tour, survey, carousel or message")
    eligible_parser.add_argument("--url", default=None, help="Current page URL")
    eligible_parser.add_argument("--session-id", default=None)
    eligible_parser.add_argument("--explain", action="store_true", help="Show the reason for every surface")

    track_parser = subparsers.add_parser("track", help="Record an impression")
    track_parser.add_argument("--surface-id", required=True)
    track_parser.add_argument("--visitor-id", required=True)
    track_parser.add_argument("--action", required=True, help="shown, clicked, completed, dismissed, screen_progressed")
    track_parser.add_argument("--session-id", default=None)
    track_parser.add_argument("--screen-index", type=int, default=None)

    stats_parser = subparsers.add_parser("stats", help="Show delivery stats for a surface")
    stats_parser.add_argument("--surface-id", required=True)

    preview_parser = subparsers.add_parser("preview", help="Count visitors matched by a rule")
    preview_parser.add_argument("--workspace-id", required=True)
    preview_parser.add_argument("--rule", default=None, help="Rule tree as JSON (omit to match everyone)")

    for name, help_text in (
        ("activate", "Activate a surface"),
        ("pause", "Pause a surface"),
        ("archive", "Archive a surface"),
        ("duplicate", "Copy a surface into a new draft"),
        ("remove", "Delete a surface and its impressions"),
    ):
        lifecycle_parser = subparsers.add_parser(name, help=help_text)
        lifecycle_parser.add_argument("--workspace-id", required=True)
        lifecycle_parser.add_argument("--surface-id", required=True)

    args = parser.parse_args()
    configure_logging(get_settings().log_level)

    try:
        if args.command == "seed":
            print(json.dumps(seed_workspace(args.file), indent=2))
        elif args.command == "eligible":
            svc = build_eligibility_service()
            context = EligibilityContext(current_url=args.url, session_id=args.session_id)
            if args.explain:
                decisions = svc.explain(args.workspace_id, args.visitor_id, context, args.kind)
                print(json.dumps([d.model_dump() for d in decisions], indent=2))
            else:
                surfaces = svc.get_eligible(args.workspace_id, args.visitor_id, context, args.kind)
                print(json.dumps([s.to_summary_payload() for s in surfaces], indent=2))
        elif args.command == "track":
            impression_id = build_impression_service().track_impression(
                args.surface_id,
                args.visitor_id,
                args.action,
                session_id=args.session_id,
                screen_index=args.screen_index,
            )
            if impression_id is None:
                print(f"Surface {args.surface_id} no longer exists; impression dropped.")
            else:
                print(f"Recorded impression {impression_id}")
        elif args.command == "stats":
            print(json.dumps(build_impression_service().stats(args.surface_id).to_dict(), indent=2))
        elif args.command == "preview":
            rule = json.loads(args.rule) if args.rule else None
            print(json.dumps(build_segment_service().preview(args.workspace_id, rule).model_dump(), indent=2))
        elif args.command in ("activate", "pause", "archive"):
            svc = build_authoring_service()
            surface = getattr(svc, args.command)(args.workspace_id, args.surface_id)
            print(f"{surface.name}: {surface.status.value}")
        elif args.command == "duplicate":
            copy = build_authoring_service().duplicate(args.workspace_id, args.surface_id)
            print(f"Created {copy.surface_id} ({copy.name})")
        elif args.command == "remove":
            removed = build_authoring_service().remove(args.workspace_id, args.surface_id)
            print(f"Deleted {args.surface_id} and {removed} impressions.")
        else:
            parser.print_help()
    except (DeliveryError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
