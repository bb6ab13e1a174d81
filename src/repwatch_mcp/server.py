"""FastMCP server bootstrap for Repwatch."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastmcp import Context, FastMCP

from . import __version__
from .catalog import CatalogLoadError, ExerciseCatalog
from .config import RepwatchSettings, get_settings
from .storage import HistoryStore, HistoryUnavailableError
from .tools import register_tools
from .tracking import TrackingClient


def configure_logging(level: str) -> None:
    """Configure root logging for the Repwatch server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_server(
    settings: Optional[RepwatchSettings] = None,
    tracking_client: TrackingClient | None = None,
    history_store: HistoryStore | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with the tracker, catalog and history store."""

    settings = settings or get_settings()

    catalog = ExerciseCatalog(settings.exercise_paths)
    tracking_client = tracking_client or TrackingClient(settings.tracker_base_url)

    history_metadata = {
        "available": False,
        "path": str(settings.chroma_persist_path),
        "collection": "exercise_history",
        "error": None,
    }

    try:
        if history_store is None:
            history_store = HistoryStore(settings.chroma_persist_path)
        history_store.ping()
        history_metadata["available"] = True
    except HistoryUnavailableError as exc:
        history_metadata["error"] = str(exc)
        history_store = None

    server = FastMCP(
        name="Repwatch MCP",
        version=__version__,
        instructions=(
            "Repwatch runs live exercise sessions against a pose-tracking service. "
            "List exercises, start one, poll its status until the target reps are "
            "reached or stop it, and review saved exercise history."
        ),
    )

    handles = register_tools(
        server,
        catalog=catalog,
        settings=settings,
        tracking_client=tracking_client,
        history_store=history_store,
    )
    session_state = handles.session_state

    @server.resource(
        "resource://repwatch/status",
        name="repwatch_status",
        title="Repwatch MCP Status",
        description="Provides the current runtime status for the Repwatch MCP server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing basic runtime state."""

        try:
            exercise_ids = sorted(catalog.load_all().keys())
            catalog_error: str | None = None
        except CatalogLoadError as exc:
            exercise_ids = []
            catalog_error = str(exc)

        tracker = session_state.get("tracker")
        session_payload = tracker.snapshot().to_dict() if tracker is not None else None

        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "tracker": {
                "base_url": settings.tracker_base_url,
                "feed_url": tracking_client.feed_url,
                "poll_interval": settings.poll_interval,
                "status_alert_threshold": settings.status_alert_threshold,
            },
            "catalog": {
                "count": len(exercise_ids),
                "ids": exercise_ids,
                "error": catalog_error,
            },
            "storage": {"history": history_metadata},
            "session": session_payload,
            "recent_events": session_state.get("events", [])[-5:],
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    setattr(server, "catalog", catalog)
    setattr(server, "tracking_client", tracking_client)
    setattr(server, "history_store", history_store)
    setattr(server, "history_metadata", history_metadata)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the Repwatch MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching Repwatch MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "tracker_base_url": settings.tracker_base_url,
            "history_available": getattr(server, "history_metadata", {}).get("available"),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
