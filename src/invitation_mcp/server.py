"""Story Invitation MCP Server - MCP tools for building and previewing mobile wedding invitations."""

from mcp.server.fastmcp import FastMCP, Context
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Any, Optional
from pathlib import Path

# SDK imports
from invitation_sdk.core.config import AppConfig
from invitation_sdk.core.invitation import InvitationData, InvitationValidationError, time_options
from invitation_sdk.core.messages import MessageCatalog
from invitation_sdk.core.playback import (
    BackgroundAudio,
    InteractionController,
    ManualScheduler,
    PlaybackSession,
    SessionEvent,
    SilentPlayer,
    Slide,
    preload_images,
    render_progress,
)
from invitation_sdk.core.service import InvitationNotFoundError, InvitationService
from invitation_sdk.integrations.naver_commerce import NaverCommerceClient, NaverCommerceError
from invitation_sdk.integrations.places import KakaoPlaceSearch
from invitation_sdk.stores.orders import OrderError

# Configure logging
logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("StoryInvitation")


# ── Global State ────────────────────────────────────────────────────────

_config: Optional[AppConfig] = None
_service: Optional[InvitationService] = None
_place_search = KakaoPlaceSearch()
_commerce: Optional[NaverCommerceClient] = None


class PlaybackHost:
    """The viewer a playback session is shown in: clock, gestures, music."""

    def __init__(self, invitation_id: str, slides: list[Slide],
                 scheduler: ManualScheduler, audio: BackgroundAudio):
        self.invitation_id = invitation_id
        self.scheduler = scheduler
        self.audio = audio
        self.events: list[str] = []
        self.session = PlaybackSession.create(slides, scheduler, on_event=self.on_event)
        self.controller = InteractionController(self.session, audio)

    def on_event(self, event: SessionEvent, session: PlaybackSession) -> None:
        self.events.append(event.value)
        if event == SessionEvent.RESTARTED:
            self.session = session
            self.controller.bind(session)
            self.audio.try_play()
        elif event == SessionEvent.ENDED:
            logger.info(f"Playback of {self.invitation_id} ended")

    def state(self) -> dict:
        snapshot = self.session.snapshot()
        return {
            "invitation_id": self.invitation_id,
            "clock_ms": self.scheduler.now_ms,
            "state": snapshot.model_dump(mode="json"),
            "slide": self.session.current_slide.model_dump(mode="json"),
            "progress": [s.model_dump(mode="json") for s in render_progress(self.session)],
            "music": {"playing": self.audio.playing, "muted": self.audio.muted},
            "events": list(self.events),
        }


_playback: Optional[PlaybackHost] = None


def get_config() -> AppConfig:
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def get_service() -> InvitationService:
    global _service
    if _service is None:
        _service = InvitationService.from_config(get_config())
    return _service


def get_commerce() -> NaverCommerceClient:
    global _commerce
    if _commerce is None:
        _commerce = NaverCommerceClient()
    return _commerce


def _require_playback() -> PlaybackHost:
    if _playback is None:
        raise RuntimeError("No playback is running. Use start_playback first.")
    return _playback


# ── Server Setup ────────────────────────────────────────────────────────

@asynccontextmanager
async def server_lifespan(server: FastMCP) -> AsyncIterator[Dict[str, Any]]:
    try:
        logger.info("StoryInvitationMCP server starting up")
        config = get_config()
        logger.info(f"Data directory: {config.data_dir}")
        yield {}
    finally:
        global _playback
        if _playback is not None:
            _playback.session.close()
            _playback = None
        logger.info("StoryInvitationMCP server shut down")


mcp = FastMCP("StoryInvitationMCP", lifespan=server_lifespan)


# ═══════════════════════════════════════════════════════════════════════
# INVITATION TOOLS
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def create_invitation(ctx: Context, invitation_id: str, invitation_json: str,
                      photo_paths: list[str], order_id: str = None,
                      overwrite: bool = False) -> str:
    """Publish an invitation: upload its photos and return the share URL.

    Parameters:
    - invitation_id: Short link id (letters, digits, '-' and '_')
    - invitation_json: Invitation fields as JSON (camelCase or snake_case keys)
    - photo_paths: 6 to 10 local image files, in display order
    - order_id: Approved order number (required when orders are enforced)
    - overwrite: Replace an existing invitation with the same id
    """
    missing = [p for p in photo_paths if not Path(p).is_file()]
    if missing:
        return f"Error: File not found: {', '.join(missing)}"

    try:
        data = InvitationData.model_validate_json(invitation_json)
        photos = [Path(p).read_bytes() for p in photo_paths]
        result = get_service().publish(invitation_id, data, photos,
                                       order_id=order_id, overwrite=overwrite)
    except InvitationValidationError as e:
        return json.dumps({"status": "invalid", "problems": e.problems}, indent=2, ensure_ascii=False)
    except Exception as e:
        logger.error(f"Publish error: {str(e)}")
        return f"Error publishing invitation: {str(e)}"

    return json.dumps({
        "status": "published",
        "invitation_id": result.invitation_id,
        "url": result.url,
        "image_urls": result.image_urls,
        "expires_at": result.expires_at,
    }, indent=2)


@mcp.tool()
def get_invitation(ctx: Context, invitation_id: str) -> str:
    """Get the stored document for an invitation.

    Parameters:
    - invitation_id: The invitation id
    """
    try:
        data = get_service().load(invitation_id)
    except (InvitationNotFoundError, ValueError) as e:
        return f"Error: {str(e)}"
    return json.dumps(data.to_document(), indent=2, ensure_ascii=False)


@mcp.tool()
def list_invitations(ctx: Context) -> str:
    """List stored invitations, newest first."""
    items = get_service().store.list_invitations()
    if not items:
        return "No invitations yet. Use create_invitation to publish one."
    return json.dumps([
        {
            "invitation_id": invitation_id,
            "couple": f"{data.groom_name} & {data.bride_name}",
            "wedding_date": data.wedding_date,
            "photo_count": len(data.image_urls),
            "created_at": data.created_at,
            "expires_at": data.expires_at,
        }
        for invitation_id, data in items
    ], indent=2, ensure_ascii=False)


@mcp.tool()
def delete_invitation(ctx: Context, invitation_id: str) -> str:
    """Delete an invitation and its photos.

    Parameters:
    - invitation_id: The invitation id
    """
    try:
        deleted = get_service().delete(invitation_id)
    except ValueError as e:
        return f"Error: {str(e)}"
    if not deleted:
        return f"Error: Invitation '{invitation_id}' not found."
    return f"Invitation '{invitation_id}' deleted."


@mcp.tool()
def cleanup_expired_invitations(ctx: Context) -> str:
    """Delete every invitation past its expiry time."""
    report = get_service().cleanup_expired()
    return json.dumps(report.to_dict(), indent=2)


@mcp.tool()
def get_share_url(ctx: Context, invitation_id: str) -> str:
    """Get the public link for an invitation.

    Parameters:
    - invitation_id: The invitation id
    """
    service = get_service()
    if not service.store.exists(invitation_id):
        return f"Error: Invitation '{invitation_id}' not found."
    return service.share_url(invitation_id)


# ═══════════════════════════════════════════════════════════════════════
# FORM HELPER TOOLS
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def search_places(ctx: Context, query: str) -> str:
    """Search wedding venues by keyword (Kakao Local).

    Parameters:
    - query: Venue name or address keyword
    """
    try:
        places = _place_search.search(query)
    except Exception as e:
        return f"Error searching places: {str(e)}"
    if not places:
        return f"No places found for '{query}'."
    return json.dumps([p.model_dump(by_alias=True) for p in places], indent=2, ensure_ascii=False)


@mcp.tool()
def get_place_search_status(ctx: Context) -> str:
    """Check whether place search is configured and its remaining quota."""
    return json.dumps(_place_search.get_status(), indent=2)


@mcp.tool()
def list_message_sets(ctx: Context) -> str:
    """List the message sets and the photo counts each one supports."""
    return json.dumps(MessageCatalog().list_sets(), indent=2, ensure_ascii=False)


@mcp.tool()
def list_wedding_times(ctx: Context) -> str:
    """List the selectable wedding times (30-minute steps)."""
    return json.dumps(time_options())


@mcp.tool()
def build_invitation_slides(ctx: Context, invitation_id: str) -> str:
    """Show the slide sequence a stored invitation plays.

    Parameters:
    - invitation_id: The invitation id
    """
    try:
        slides = get_service().load_slides(invitation_id)
    except (InvitationNotFoundError, ValueError) as e:
        return f"Error: {str(e)}"
    if not slides:
        return "Error: This invitation cannot be shown (needs 6-10 photos and a matching message set)."
    return json.dumps([s.model_dump(mode="json") for s in slides], indent=2, ensure_ascii=False)


# ═══════════════════════════════════════════════════════════════════════
# ORDER TOOLS
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def add_order(ctx: Context, product_order_id: str) -> str:
    """Approve an order number so it can be used to publish one invitation.

    Parameters:
    - product_order_id: The store's product order number
    """
    orders = get_service().orders
    try:
        order = orders.add(product_order_id)
    except OrderError as e:
        return f"Error: {str(e)}"
    return json.dumps(order.model_dump(), indent=2)


@mcp.tool()
def list_orders(ctx: Context) -> str:
    """List approved orders, newest first."""
    orders = get_service().orders.list_orders()
    if not orders:
        return "No approved orders."
    return json.dumps([o.model_dump() for o in orders], indent=2)


@mcp.tool()
def delete_order(ctx: Context, order_id: str) -> str:
    """Remove an approved order.

    Parameters:
    - order_id: The registry id returned by add_order / list_orders
    """
    if not get_service().orders.delete(order_id):
        return f"Error: Order '{order_id}' not found."
    return f"Order '{order_id}' deleted."


@mcp.tool()
def verify_order(ctx: Context, product_order_id: str, approve: bool = True) -> str:
    """Check an order against Naver Commerce and optionally approve it.

    Parameters:
    - product_order_id: The product order number to look up
    - approve: Register the order as approved when it is a paid order
    """
    try:
        info = get_commerce().query_order(product_order_id)
    except NaverCommerceError as e:
        return f"Error: {str(e)}"
    except Exception as e:
        logger.error(f"Order lookup error: {str(e)}")
        return f"Error verifying order: {str(e)}"

    if info is None:
        return json.dumps({"verified": False, "product_order_id": product_order_id}, indent=2)

    result: dict = {"verified": True, "order": info.to_dict()}
    if approve:
        orders = get_service().orders
        existing = orders.find(product_order_id)
        if existing is None:
            existing = orders.add(product_order_id, approved_by="naver-commerce")
        result["approved"] = existing.model_dump()
    return json.dumps(result, indent=2, ensure_ascii=False)


@mcp.tool()
def search_recent_orders(ctx: Context, days: int = 7) -> str:
    """List paid invitation orders from the last few days.

    Parameters:
    - days: How many days back to look
    """
    try:
        orders = get_commerce().search_recent_orders(days=days)
    except NaverCommerceError as e:
        return f"Error: {str(e)}"
    except Exception as e:
        return f"Error searching orders: {str(e)}"
    return json.dumps([o.to_dict() for o in orders], indent=2, ensure_ascii=False)


# ═══════════════════════════════════════════════════════════════════════
# PLAYBACK TOOLS
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def start_playback(ctx: Context, invitation_id: str, preload: bool = False) -> str:
    """Open an invitation in a simulated viewer on a virtual clock.

    Parameters:
    - invitation_id: The invitation to play
    - preload: Fetch every photo once before starting
    """
    global _playback
    try:
        slides = get_service().load_slides(invitation_id)
    except (InvitationNotFoundError, ValueError) as e:
        return f"Error: {str(e)}"
    if not slides:
        return "Error: This invitation has no playable slides."

    report = None
    if preload:
        report = preload_images([s.image_url for s in slides if s.image_url])

    if _playback is not None:
        _playback.session.close()

    audio = BackgroundAudio(SilentPlayer())
    host = PlaybackHost(invitation_id, slides, ManualScheduler(), audio)
    audio.start()
    _playback = host

    state = host.state()
    if report is not None:
        state["preload"] = {"loaded": len(report.loaded), "failed": report.failed}
    return json.dumps(state, indent=2, ensure_ascii=False)


def _playback_action(action) -> str:
    try:
        host = _require_playback()
        action(host)
        return json.dumps(host.state(), indent=2, ensure_ascii=False)
    except Exception as e:
        return f"Error: {str(e)}"


def _navigate(step):
    """Run a navigation request and resolve its pending tick right away."""
    def action(h: PlaybackHost):
        step(h)
        h.scheduler.run_due()
    return _playback_action(action)


@mcp.tool()
def playback_advance(ctx: Context) -> str:
    """Request the next slide (ends the session from the last slide)."""
    return _navigate(lambda h: h.session.advance())


@mcp.tool()
def playback_retreat(ctx: Context) -> str:
    """Request the previous slide."""
    return _navigate(lambda h: h.session.retreat())


@mcp.tool()
def playback_tap(ctx: Context, x: float, viewport_width: float) -> str:
    """Tap the viewer: left 30% goes back, the rest goes forward.

    Parameters:
    - x: Horizontal tap position
    - viewport_width: Viewer width in the same units
    """
    return _navigate(lambda h: h.controller.tap(x, viewport_width))


@mcp.tool()
def playback_press(ctx: Context) -> str:
    """Press and hold the viewer (pauses playback)."""
    return _playback_action(lambda h: h.controller.press())


@mcp.tool()
def playback_release(ctx: Context) -> str:
    """Release a held press (resumes playback)."""
    return _playback_action(lambda h: h.controller.release())


@mcp.tool()
def playback_restart(ctx: Context) -> str:
    """Start the invitation over from the first slide."""
    return _playback_action(lambda h: h.session.restart())


@mcp.tool()
def playback_close(ctx: Context) -> str:
    """Close the viewer."""
    def close(h: PlaybackHost):
        h.session.close()
        h.audio.stop()
    return _playback_action(close)


@mcp.tool()
def playback_advance_clock(ctx: Context, ms: float) -> str:
    """Let virtual time pass, firing due timers and navigation.

    Parameters:
    - ms: Milliseconds to advance the clock by
    """
    return _playback_action(lambda h: h.scheduler.advance(ms))


@mcp.tool()
def playback_state(ctx: Context) -> str:
    """Get the current slide, progress bar segments, and music state."""
    return _playback_action(lambda h: None)


@mcp.tool()
def toggle_music(ctx: Context) -> str:
    """Mute or unmute the background music."""
    return _playback_action(lambda h: h.audio.toggle_mute())


# ═══════════════════════════════════════════════════════════════════════
# MCP PROMPT
# ═══════════════════════════════════════════════════════════════════════

@mcp.prompt()
def invitation_workflow() -> str:
    """Recommended workflow for creating a story invitation"""
    return """You are helping the user create a mobile wedding invitation. Follow this workflow:

1. **Collect Details**: Names (Korean and English), parents, wedding date and time.
   - Use list_wedding_times() for the allowed time values.

2. **Find the Venue**: Use search_places() and copy name, address, lat and lng
   into weddingLocation, weddingAddress, weddingLat and weddingLng.

3. **Pick Messages**: Use list_message_sets() and set messageSetId.

4. **Publish**: Use create_invitation() with 6 to 10 photo paths.
   - If orders are enforced, verify_order() or add_order() first.

5. **Preview**: Use build_invitation_slides() to review the sequence, then
   start_playback() and step with playback_advance_clock(), playback_tap(),
   playback_press() and playback_release().

Tips:
- Each slide shows for 3 seconds; the details page waits for the viewer
- Use cleanup_expired_invitations() to purge invitations past their expiry
- get_share_url() returns the link to send to guests
"""


# ── Main ────────────────────────────────────────────────────────────────

def main():
    """Run the MCP server"""
    mcp.run()


if __name__ == "__main__":
    main()
