from urllib.parse import urlparse

from sqlalchemy import func

from skillswap import db
from skillswap.auth import validate_session
from skillswap.models import ExternalLink
from skillswap.utils import INVALID_SESSION, fail, ok

URL_SCHEMES = ('http', 'https')
MAX_PLATFORM_LENGTH = 50
MAX_URL_LENGTH = 500


def is_valid_url(url):
    """Absolute http(s) URL with a host."""
    if not isinstance(url, str) or len(url) > MAX_URL_LENGTH:
        return False
    parts = urlparse(url.strip())
    return parts.scheme in URL_SCHEMES and bool(parts.netloc)


def link_to_dict(link):
    return {'id': link.id, 'platform': link.platform, 'url': link.url}


def get_user_links(user_id):
    links = ExternalLink.query.filter_by(user_id=user_id).order_by(ExternalLink.id).all()
    return [link_to_dict(link) for link in links]


def add_link(token, platform, url):
    info = validate_session(token)
    if info is None:
        return fail(INVALID_SESSION)

    platform = platform.strip() if isinstance(platform, str) else ''
    if not platform or len(platform) > MAX_PLATFORM_LENGTH:
        return fail("Platform is required")

    if not is_valid_url(url):
        return fail("Invalid URL format")

    # One link per platform, compared case-insensitively
    duplicate = ExternalLink.query.filter(
        ExternalLink.user_id == info.user_id,
        func.lower(ExternalLink.platform) == platform.lower(),
    ).first()
    if duplicate:
        return fail("Link for this platform already exists")

    link = ExternalLink(user_id=info.user_id, platform=platform, url=url.strip())
    db.session.add(link)
    db.session.commit()
    return ok(link_id=link.id)


def _own_link(token, link_id):
    info = validate_session(token)
    if info is None:
        return None, fail(INVALID_SESSION)

    link = db.session.get(ExternalLink, link_id)
    if link is None or link.user_id != info.user_id:
        return None, fail("Link not found")
    return link, None


def update_link(token, link_id, url):
    link, error = _own_link(token, link_id)
    if error:
        return error

    if not is_valid_url(url):
        return fail("Invalid URL format")

    link.url = url.strip()
    db.session.commit()
    return ok()


def delete_link(token, link_id):
    link, error = _own_link(token, link_id)
    if error:
        return error

    db.session.delete(link)
    db.session.commit()
    return ok()
