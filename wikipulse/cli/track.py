# ==============================================================================
# Track Commands
# ==============================================================================
"""
Event recording commands for the wikipulse CLI.

Records events into the configured store the same way an embedding
application would through EventRecorder.
"""

from typing import Annotated, Any, Optional

import typer
from pydantic import ValidationError

from wikipulse.cli.shared import C, I, get_tracking, parse_choice, print_json
from wikipulse.core.models import ContentType, EventMetadata, EventType


def _parse_meta(pairs: Optional[list[str]]) -> dict[str, Any]:
    """Parse repeated key=value options into a dict."""
    meta: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Invalid --meta '{pair}'. Use key=value")
        meta[key.strip()] = value.strip()
    return meta


def _check_metadata(metadata: dict[str, Any]) -> None:
    """Reject metadata the recorder would drop, naming the first bad field."""
    try:
        EventMetadata.model_validate({k: v for k, v in metadata.items() if v is not None})
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        raise typer.BadParameter(f"Invalid metadata '{field}': {error['msg']}")


# ==============================================================================
# Commands
# ==============================================================================


def track_event(
    event_type: Annotated[str, typer.Argument(help="Event type, e.g. article_view")],
    content_id: Annotated[
        Optional[str], typer.Option("--content-id", "-c", help="Content identifier")
    ] = None,
    content_type: Annotated[
        Optional[str], typer.Option("--content-type", "-t", help="Content type (article, tutorial, ...)")
    ] = None,
    title: Annotated[Optional[str], typer.Option("--title", help="Content title")] = None,
    page: Annotated[Optional[str], typer.Option("--page", "-p", help="Page path")] = None,
    user: Annotated[Optional[str], typer.Option("--user", "-u", help="User identifier")] = None,
    query: Annotated[Optional[str], typer.Option("--query", "-q", help="Search query")] = None,
    results: Annotated[
        Optional[int], typer.Option("--results", help="Search result count")
    ] = None,
    meta: Annotated[
        Optional[list[str]],
        typer.Option("--meta", "-m", help="Extra metadata as key=value (repeatable)"),
    ] = None,
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output the recorded event as JSON")
    ] = False,
) -> None:
    """Record one event.

    Examples:
        wikipulse track event article_view -c python-basics -t article --title "Python Basics"
        wikipulse track event search_perform -q "list comprehension" --results 12
        wikipulse track event page_view -p /tutorials -m utm_source=newsletter
    """
    kind = parse_choice(event_type, EventType, "event type")
    metadata: dict[str, Any] = {
        "content_id": content_id,
        "content_type": parse_choice(content_type, ContentType, "content type")
        if content_type
        else None,
        "content_title": title,
        "search_query": query,
        "results_count": results,
    }
    metadata.update(_parse_meta(meta))
    _check_metadata(metadata)

    tracking = get_tracking()
    try:
        event = tracking.recorder.track(kind, metadata, user_id=user, page=page)
    finally:
        tracking.close()

    if event is None:
        print(f"{C.BRIGHT_YELLOW}{I.WARN} Consent revoked, event not recorded{C.RESET}")
        raise typer.Exit(1)

    if json_output:
        print_json(event.model_dump(mode="json", exclude_none=True))
        return

    print(f"  {C.BRIGHT_GREEN}{I.CHECK}{C.RESET} Recorded {C.BOLD}{event.type.value}{C.RESET}")
    print(f"    ID:       {C.WHITE}{event.id}{C.RESET}")
    print(f"    Session:  {C.WHITE}{event.session_id}{C.RESET}")
    print(f"    User:     {C.WHITE}{event.user_id}{C.RESET}")
    print(f"    Page:     {C.WHITE}{event.page}{C.RESET}")


def track_impression(
    content_id: Annotated[str, typer.Argument(help="Recommended content identifier")],
    content_type: Annotated[
        str, typer.Option("--content-type", "-t", help="Content type (article, tutorial, ...)")
    ] = ContentType.ARTICLE.value,
    position: Annotated[
        float, typer.Option("--position", help="Position the item was shown at")
    ] = 1,
) -> None:
    """Count one recommendation impression (no event is recorded)."""
    kind = parse_choice(content_type, ContentType, "content type")

    tracking = get_tracking()
    try:
        saved = tracking.recorder.track_recommendation_impression(content_id, kind, position)
    finally:
        tracking.close()

    if not saved:
        print(f"{C.BRIGHT_RED}{I.CROSS} Impression not recorded{C.RESET}")
        raise typer.Exit(1)
    print(f"  {C.BRIGHT_GREEN}{I.CHECK}{C.RESET} Impression recorded for {C.BOLD}{content_id}{C.RESET}")
