from skillswap import db, storage
from skillswap.auth import current_user, validate_session
from skillswap.models import PortfolioItem, Report, User
from skillswap.ratings import get_reputation
from skillswap.utils import INVALID_SESSION, fail, ok


def get_current_user(token):
    user = current_user(token)
    if user is None:
        return None

    return {
        'id': user.id,
        'email': user.email,
        'name': user.name,
        'bio': user.bio,
        'profile_picture': user.profile_picture,
        'profile_picture_url': storage.get_url(user.profile_picture),
        'credits': user.credits,
        'role': user.role,
        'is_active': user.is_active,
        'suspended_until': user.suspended_until.isoformat() if user.suspended_until else None,
        'suspension_reason': user.suspension_reason,
    }


def get_user_profile(user_id):
    """Public profile with reputation, or None for unknown or inactive users."""
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None

    reputation = get_reputation(user.id)
    return {
        'id': user.id,
        'name': user.name,
        'bio': user.bio,
        'profile_picture_url': storage.get_url(user.profile_picture),
        'credits': user.credits,
        'role': user.role,
        'provider_rating': reputation['provider_rating'],
        'requester_rating': reputation['requester_rating'],
        'total_provider_ratings': reputation['total_provider_ratings'],
        'total_requester_ratings': reputation['total_requester_ratings'],
    }


def update_profile(token, name=None, bio=None, profile_picture=None):
    user = current_user(token)
    if user is None:
        return False

    if name is not None:
        user.name = name
    if bio is not None:
        user.bio = bio
    if profile_picture is not None:
        user.profile_picture = profile_picture

    db.session.commit()
    return True


def report_user(token, user_id, reason):
    info = validate_session(token)
    if info is None:
        return fail(INVALID_SESSION)

    if info.user_id == user_id:
        return fail("Cannot report yourself")

    target = db.session.get(User, user_id)
    if target is None:
        return fail("User not found")

    if target.is_admin:
        return fail("Cannot report administrators")

    if not reason:
        return fail("A reason is required")

    db.session.add(Report(reporter_id=info.user_id, report_type='user', target_id=user_id, reason=reason))
    db.session.commit()
    return ok()


def portfolio_item_to_dict(item):
    return {
        'id': item.id,
        'title': item.title,
        'description': item.description,
        'file_id': item.file_id,
        'file_type': item.file_type,
        'url': storage.get_url(item.file_id),
        'created_at': item.created_at.isoformat(),
    }


def get_user_portfolio(user_id):
    items = PortfolioItem.query.filter_by(user_id=user_id).order_by(PortfolioItem.id.desc()).all()
    return [portfolio_item_to_dict(item) for item in items]


def add_portfolio_item(token, title, file_id, file_type, description=None):
    info = validate_session(token)
    if info is None:
        return fail(INVALID_SESSION)

    if not title:
        return fail("Title is required")

    if file_type not in ('image', 'document'):
        return fail("Invalid file type")

    item = PortfolioItem(
        user_id=info.user_id,
        title=title,
        description=description,
        file_id=file_id,
        file_type=file_type,
    )
    db.session.add(item)
    db.session.commit()
    return ok(item_id=item.id)


def update_portfolio_item(token, item_id, title=None, description=None):
    info = validate_session(token)
    if info is None:
        return False

    item = db.session.get(PortfolioItem, item_id)
    if item is None or item.user_id != info.user_id:
        return False

    if title is not None:
        item.title = title
    if description is not None:
        item.description = description

    db.session.commit()
    return True


def delete_portfolio_item(token, item_id):
    info = validate_session(token)
    if info is None:
        return False

    item = db.session.get(PortfolioItem, item_id)
    if item is None or item.user_id != info.user_id:
        return False

    file_id = item.file_id
    db.session.delete(item)
    db.session.commit()
    storage.delete_file(file_id)
    return True
