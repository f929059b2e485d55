from sqlalchemy import or_

from skillswap import db
from skillswap.auth import current_user, validate_session
from skillswap.models import ServiceListing, Skill, User
from skillswap.skills import normalize_skill
from skillswap.utils import INVALID_SESSION, fail, is_credit_amount, ok

LISTING_MODES = ('credit', 'skill_swap', 'both')
DEFAULT_LIMIT = 50


def listing_to_dict(listing, owner_name=None):
    data = {
        'id': listing.id,
        'user_id': listing.user_id,
        'title': listing.title,
        'description': listing.description,
        'skill_required': listing.skill_required,
        'exchange_mode': listing.exchange_mode,
        'credit_amount': listing.credit_amount,
        'is_active': listing.is_active,
        'created_at': listing.created_at.isoformat(),
    }
    if owner_name is not None:
        data['user_name'] = owner_name
    return data


def get_user_listings(user_id):
    listings = ServiceListing.query.filter_by(user_id=user_id).order_by(ServiceListing.id.desc()).all()
    return [listing_to_dict(l) for l in listings]


def _active_with_owner():
    return (
        db.session.query(ServiceListing, User.name)
        .join(User, User.id == ServiceListing.user_id)
        .filter(ServiceListing.is_active.is_(True))
    )


def get_active_listings(limit=None):
    rows = _active_with_owner().order_by(ServiceListing.id.desc()).limit(limit or DEFAULT_LIMIT).all()
    return [listing_to_dict(listing, name) for listing, name in rows]


def search_listings(query):
    term = (query or '').strip()
    rows = (
        _active_with_owner()
        .filter(
            or_(
                ServiceListing.title.ilike(f"%{term}%"),
                ServiceListing.description.ilike(f"%{term}%"),
                ServiceListing.skill_required.ilike(f"%{term}%"),
            )
        )
        .order_by(ServiceListing.id.desc())
        .all()
    )
    return [listing_to_dict(listing, name) for listing, name in rows]


def create_listing(token, title, description, skill_required, exchange_mode, credit_amount=None):
    user = current_user(token)
    if user is None:
        return fail(INVALID_SESSION)

    if user.is_admin:
        return fail("Administrators cannot create service listings")

    if not title or not description:
        return fail("Title and description are required")

    if exchange_mode not in LISTING_MODES:
        return fail("Invalid exchange mode")

    if credit_amount is not None and not is_credit_amount(credit_amount):
        return fail("Credit amount must be a positive whole number")

    skill_name = normalize_skill(skill_required)
    if not Skill.query.filter_by(user_id=user.id, name=skill_name).first():
        return fail("You must have this skill in your profile first")

    listing = ServiceListing(
        user_id=user.id,
        title=title,
        description=description,
        skill_required=skill_name,
        exchange_mode=exchange_mode,
        credit_amount=credit_amount,
        is_active=True,
    )
    db.session.add(listing)
    db.session.commit()
    return ok(listing_id=listing.id)


def update_listing(token, listing_id, **changes):
    info = validate_session(token)
    if info is None:
        return fail(INVALID_SESSION)

    listing = db.session.get(ServiceListing, listing_id)
    if listing is None:
        return fail("Listing not found")

    if listing.user_id != info.user_id:
        return fail("Only the owner can edit this listing")

    updates = {k: v for k, v in changes.items() if v is not None}
    if not updates:
        return fail("No changes to update")

    if 'exchange_mode' in updates and updates['exchange_mode'] not in LISTING_MODES:
        return fail("Invalid exchange mode")

    if 'credit_amount' in updates and not is_credit_amount(updates['credit_amount']):
        return fail("Credit amount must be a positive whole number")

    if 'is_active' in updates and not isinstance(updates['is_active'], bool):
        return fail("Active flag must be true or false")

    if 'skill_required' in updates:
        skill_name = normalize_skill(updates['skill_required'])
        if not Skill.query.filter_by(user_id=info.user_id, name=skill_name).first():
            return fail("You must have this skill in your profile first")
        updates['skill_required'] = skill_name

    for field in ('title', 'description', 'skill_required', 'exchange_mode', 'credit_amount', 'is_active'):
        if field in updates:
            setattr(listing, field, updates[field])

    db.session.commit()
    return ok()


def delete_listing(token, listing_id):
    info = validate_session(token)
    if info is None:
        return False

    listing = db.session.get(ServiceListing, listing_id)
    if listing is None or listing.user_id != info.user_id:
        return False

    db.session.delete(listing)
    db.session.commit()
    return True
