import logging

from skillswap import db
from skillswap.auth import current_user, validate_session
from skillswap.models import Skill, SkillEndorsement, Transaction, User
from skillswap.utils import INVALID_SESSION, fail, ok

logger = logging.getLogger(__name__)

SKILL_LEVELS = ('beginner', 'intermediate', 'expert')
MIN_SEARCH_LENGTH = 2
SEARCH_LIMIT = 10


def normalize_skill(name):
    return (name or '').strip().lower()


def skill_to_dict(skill):
    return {
        'id': skill.id,
        'name': skill.name,
        'level': skill.level,
        'endorsements': skill.endorsements,
    }


def get_user_skills(user_id):
    skills = Skill.query.filter_by(user_id=user_id).order_by(Skill.id).all()
    return [skill_to_dict(s) for s in skills]


def add_skill(token, name, level):
    user = current_user(token)
    if user is None:
        return fail(INVALID_SESSION)

    if user.is_admin:
        return fail("Administrators cannot add skills")

    if level not in SKILL_LEVELS:
        return fail("Invalid skill level")

    normalized = normalize_skill(name)
    if not normalized:
        return fail("Skill name is required")

    if Skill.query.filter_by(user_id=user.id, name=normalized).first():
        return fail("Skill already exists")

    skill = Skill(user_id=user.id, name=normalized, level=level, endorsements=0)
    db.session.add(skill)
    db.session.commit()
    return ok(skill_id=skill.id)


def update_skill(token, skill_id, level):
    info = validate_session(token)
    if info is None or level not in SKILL_LEVELS:
        return False

    skill = db.session.get(Skill, skill_id)
    if skill is None or skill.user_id != info.user_id:
        return False

    skill.level = level
    db.session.commit()
    return True


def delete_skill(token, skill_id):
    info = validate_session(token)
    if info is None:
        return False

    skill = db.session.get(Skill, skill_id)
    if skill is None or skill.user_id != info.user_id:
        return False

    SkillEndorsement.query.filter_by(skill_id=skill.id).delete(synchronize_session=False)
    db.session.delete(skill)
    db.session.commit()
    return True


def search_skills(query):
    """Distinct skill names containing the query, for autocomplete."""
    query = normalize_skill(query)
    if len(query) < MIN_SEARCH_LENGTH:
        return []

    rows = (
        db.session.query(Skill.name)
        .filter(Skill.name.contains(query, autoescape=True))
        .distinct()
        .order_by(Skill.name)
        .limit(SEARCH_LIMIT)
        .all()
    )
    return [row[0] for row in rows]


def get_all_unique_skills():
    rows = (
        db.session.query(Skill.name, db.func.count(Skill.id))
        .group_by(Skill.name)
        .order_by(db.func.count(Skill.id).desc(), Skill.name)
        .all()
    )
    return [{'name': name, 'count': count} for name, count in rows]


def search_users_by_skill(skill_name):
    rows = (
        db.session.query(Skill, User)
        .join(User, User.id == Skill.user_id)
        .filter(Skill.name == normalize_skill(skill_name), User.is_active.is_(True))
        .all()
    )
    return [
        {
            'id': user.id,
            'name': user.name,
            'bio': user.bio,
            'skill_level': skill.level,
            'endorsements': skill.endorsements,
        }
        for skill, user in rows
    ]


def endorse_skill(token, skill_id, transaction_id):
    """
    Endorse a provider's skill. The endorser must have been the requester of a
    completed transaction in which the skill's owner was the provider.
    """
    info = validate_session(token)
    if info is None:
        return fail(INVALID_SESSION)

    skill = db.session.get(Skill, skill_id)
    if skill is None:
        return fail("Skill not found")

    if SkillEndorsement.query.filter_by(skill_id=skill.id, endorser_id=info.user_id).first():
        return fail("Already endorsed this skill")

    transaction = db.session.get(Transaction, transaction_id)
    if (
        transaction is None
        or transaction.requester_id != info.user_id
        or transaction.provider_id != skill.user_id
        or transaction.status != 'completed'
    ):
        return fail("Invalid transaction")

    db.session.add(SkillEndorsement(skill_id=skill.id, endorser_id=info.user_id, transaction_id=transaction.id))
    skill.endorsements += 1
    db.session.commit()
    logger.debug("User %s endorsed skill %s", info.user_id, skill.id)
    return ok()
