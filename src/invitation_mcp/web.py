"""Link-preview web app: OG-tagged HTML shell, slide JSON, and expiry cleanup."""

import html
import logging
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from invitation_sdk.core.config import AppConfig
from invitation_sdk.core.service import InvitationNotFoundError, InvitationService
from invitation_sdk.stores.invitation_store import validate_invitation_id

logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("StoryInvitation.web")

DEFAULT_TITLE = "셀프 모바일 청첩장 당일제작, 인스타 스토리 청첩장"
DEFAULT_DESCRIPTION = (
    "인스타그램 스토리 형식의 감성적인 모바일 청첩장을 무료로 제작하세요. "
    "사진 업로드만으로 당일 제작 가능한 디지털 청첩장 서비스입니다."
)
DEFAULT_IMAGE = "https://www.mobilewedding.kr/mainPage0.png"

# Page routes served by the single-page app itself.
APP_PAGES = {"create", "admin"}

DEFAULT_TEMPLATE = """<!DOCTYPE html>
<html lang="ko">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>__OG_TITLE__</title>
  <meta name="description" content="__OG_DESCRIPTION__" />
  <meta property="og:type" content="website" />
  <meta property="og:title" content="__OG_TITLE__" />
  <meta property="og:description" content="__OG_DESCRIPTION__" />
  <meta property="og:image" content="__OG_IMAGE__" />
  <meta property="og:url" content="__OG_URL__" />
</head>
<body>
  <div id="root"></div>
</body>
</html>
"""


def preview_tags(service: InvitationService, invitation_id: str) -> dict[str, str]:
    """OG values for a path; unknown or app-page ids get the site defaults."""
    site_url = service.config.public_url.rstrip("/")
    tags = {
        "title": DEFAULT_TITLE,
        "description": DEFAULT_DESCRIPTION,
        "image": DEFAULT_IMAGE,
        "url": site_url,
    }
    if not invitation_id or invitation_id in APP_PAGES:
        return tags

    try:
        validate_invitation_id(invitation_id)
        data = service.load(invitation_id)
    except (ValueError, InvitationNotFoundError):
        return tags

    time_part = f"{data.wedding_time}, " if data.wedding_time else ""
    hall_part = f" {data.wedding_hall}" if data.wedding_hall else ""
    tags["title"] = f"{data.groom_name} ❤️ {data.bride_name} 결혼합니다"
    tags["description"] = f"{data.wedding_date} {time_part}{data.wedding_location}{hall_part}"
    tags["image"] = data.image_urls[0] if data.image_urls else DEFAULT_IMAGE
    tags["url"] = f"{site_url}/invitation/{invitation_id}"
    return tags


def render_preview(template: str, tags: dict[str, str]) -> str:
    return (template
            .replace("__OG_TITLE__", html.escape(tags["title"]))
            .replace("__OG_DESCRIPTION__", html.escape(tags["description"]))
            .replace("__OG_IMAGE__", html.escape(tags["image"]))
            .replace("__OG_URL__", html.escape(tags["url"])))


def load_template(path: Optional[Path]) -> str:
    if path is None:
        return DEFAULT_TEMPLATE
    return Path(path).read_text(encoding="utf-8")


def create_app(config: Optional[AppConfig] = None,
               service: Optional[InvitationService] = None) -> FastAPI:
    config = config or (service.config if service else AppConfig.from_env())
    service = service or InvitationService.from_config(config)

    app = FastAPI(title="Story Invitation")
    app.state.service = service
    app.mount("/media", StaticFiles(directory=str(config.media_dir), check_dir=False), name="media")

    def preview(invitation_id: str) -> HTMLResponse:
        try:
            template = load_template(config.preview_template_path)
            page = render_preview(template, preview_tags(service, invitation_id))
        except Exception as e:
            logger.error(f"Preview generation failed for '{invitation_id}': {e}")
            return HTMLResponse("Error generating preview", status_code=500)
        return HTMLResponse(page)

    def check_api_key(header_key: Optional[str], query_key: Optional[str]) -> None:
        supplied = header_key or query_key
        if not config.cleanup_api_key or supplied != config.cleanup_api_key:
            raise HTTPException(status_code=401, detail="Unauthorized")

    @app.get("/api/invitations/{invitation_id}/slides")
    def get_slides(invitation_id: str):
        try:
            validate_invitation_id(invitation_id)
            slides = service.load_slides(invitation_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except InvitationNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {
            "invitationId": invitation_id,
            "slides": [s.model_dump(mode="json") for s in slides],
        }

    @app.api_route("/api/cleanup-expired", methods=["GET", "POST"])
    def cleanup_expired(x_api_key: Optional[str] = Header(default=None),
                        api_key: Optional[str] = Query(default=None, alias="apiKey")):
        check_api_key(x_api_key, api_key)
        try:
            report = service.cleanup_expired()
        except Exception as e:
            logger.error(f"Cleanup error: {e}")
            return JSONResponse(
                {"success": False, "error": "Internal server error", "message": str(e)},
                status_code=500,
            )
        return report.to_dict()

    @app.get("/", response_class=HTMLResponse)
    def index():
        return preview("")

    @app.get("/invitation/{invitation_id}", response_class=HTMLResponse)
    def invitation_page(invitation_id: str):
        return preview(invitation_id)

    @app.get("/{invitation_id}", response_class=HTMLResponse)
    def short_link(invitation_id: str):
        return preview(invitation_id)

    return app


def main():
    """Run the preview web app"""
    config = AppConfig.from_env()
    uvicorn.run(create_app(config), host=config.web_host, port=config.web_port)


if __name__ == "__main__":
    main()
