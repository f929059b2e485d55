from datetime import datetime, timezone

from skillswap import db


def utcnow():
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.Text, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    bio = db.Column(db.String(500), nullable=True)
    profile_picture = db.Column(db.String(255), nullable=True)
    credits = db.Column(db.Integer, nullable=False, default=0)
    role = db.Column(db.String(20), nullable=False, default='user', index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    suspended_until = db.Column(db.DateTime, nullable=True)
    suspension_reason = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    skills = db.relationship('Skill', backref='user', lazy=True, cascade='all, delete-orphan')

    @property
    def is_admin(self):
        return self.role == 'admin'

    def is_suspended(self, now=None):
        if self.suspended_until is None:
            return False
        return self.suspended_until > (now or utcnow())


class Session(db.Model):
    __tablename__ = 'sessions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class Skill(db.Model):
    __tablename__ = 'skills'
    __table_args__ = (db.UniqueConstraint('user_id', 'name', name='unique_user_skill'),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    level = db.Column(db.String(20), nullable=False, default='beginner')
    endorsements = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class SkillEndorsement(db.Model):
    __tablename__ = 'skill_endorsements'

    id = db.Column(db.Integer, primary_key=True)
    skill_id = db.Column(db.Integer, db.ForeignKey('skills.id', ondelete='CASCADE'), nullable=False, index=True)
    endorser_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey('transactions.id'), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class ServiceListing(db.Model):
    __tablename__ = 'service_listings'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    skill_required = db.Column(db.String(100), nullable=False, index=True)
    exchange_mode = db.Column(db.String(20), nullable=False)
    credit_amount = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class PortfolioItem(db.Model):
    __tablename__ = 'portfolio_items'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    file_id = db.Column(db.String(255), nullable=False)
    file_type = db.Column(db.String(20), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class ExternalLink(db.Model):
    __tablename__ = 'external_links'
    __table_args__ = (db.UniqueConstraint('user_id', 'platform', name='unique_user_platform'),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    platform = db.Column(db.String(50), nullable=False)
    url = db.Column(db.String(500), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class ServiceRequest(db.Model):
    __tablename__ = 'service_requests'

    id = db.Column(db.Integer, primary_key=True)
    requester_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    skill_needed = db.Column(db.String(100), nullable=False, index=True)
    exchange_mode = db.Column(db.String(20), nullable=False)
    credit_amount = db.Column(db.Integer, nullable=True)
    skill_offered = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='open', index=True)
    matched_provider_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    is_reported = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    requester = db.relationship('User', foreign_keys=[requester_id])


class SuggestedMatch(db.Model):
    __tablename__ = 'suggested_matches'
    __table_args__ = (db.UniqueConstraint('request_id', 'provider_id', name='unique_request_provider'),)

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey('service_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    provider_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    match_score = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='pending')
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    provider = db.relationship('User', foreign_keys=[provider_id])


class Negotiation(db.Model):
    __tablename__ = 'negotiations'

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey('service_requests.id'), nullable=False, index=True)
    match_id = db.Column(db.Integer, db.ForeignKey('suggested_matches.id', ondelete='CASCADE'), nullable=False, index=True)
    requester_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    provider_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    initiator_role = db.Column(db.String(20), nullable=False)
    proposed_exchange_mode = db.Column(db.String(20), nullable=False)
    proposed_credits = db.Column(db.Integer, nullable=True)
    proposed_skill_offered = db.Column(db.String(100), nullable=True)
    message = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def initiator_id(self):
        return self.requester_id if self.initiator_role == 'requester' else self.provider_id

    @property
    def recipient_id(self):
        return self.provider_id if self.initiator_role == 'requester' else self.requester_id


class Transaction(db.Model):
    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey('service_requests.id'), nullable=False, index=True)
    # One transaction per accepted match
    match_id = db.Column(db.Integer, db.ForeignKey('suggested_matches.id'), nullable=True, unique=True)
    requester_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    provider_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    transaction_type = db.Column(db.String(20), nullable=False)
    credit_amount = db.Column(db.Integer, nullable=True)
    skill_offered = db.Column(db.String(100), nullable=True)
    skill_received = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    requester_confirmed = db.Column(db.Boolean, nullable=False, default=False)
    provider_confirmed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    request = db.relationship('ServiceRequest')

    @property
    def is_credit_exchange(self):
        return self.transaction_type == 'credit' and bool(self.credit_amount)

    def is_party(self, user_id):
        return user_id in (self.requester_id, self.provider_id)

    def role_of(self, user_id):
        if user_id == self.requester_id:
            return 'requester'
        if user_id == self.provider_id:
            return 'provider'
        return None

    def other_party(self, user_id):
        return self.provider_id if user_id == self.requester_id else self.requester_id


class CreditHistory(db.Model):
    __tablename__ = 'credit_history'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey('transactions.id'), nullable=True)
    amount = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(20), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    balance_after = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class Rating(db.Model):
    __tablename__ = 'ratings'
    __table_args__ = (db.UniqueConstraint('transaction_id', 'rater_id', name='unique_transaction_rater'),)

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey('transactions.id'), nullable=False, index=True)
    rater_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    ratee_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    rater_role = db.Column(db.String(20), nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text, nullable=True)
    response = db.Column(db.Text, nullable=True)
    is_reported = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    rater = db.relationship('User', foreign_keys=[rater_id])


class Dispute(db.Model):
    __tablename__ = 'disputes'

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey('transactions.id'), nullable=False, unique=True)
    reporter_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    evidence = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='open', index=True)
    previous_status = db.Column(db.String(20), nullable=False)
    resolution = db.Column(db.Text, nullable=True)
    resolved_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    resolved_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    transaction = db.relationship('Transaction')
    reporter = db.relationship('User', foreign_keys=[reporter_id])


class Report(db.Model):
    __tablename__ = 'reports'

    id = db.Column(db.Integer, primary_key=True)
    reporter_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    report_type = db.Column(db.String(20), nullable=False, index=True)
    target_id = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    admin_notes = db.Column(db.Text, nullable=True)
    resolved_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    resolved_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    reporter = db.relationship('User', foreign_keys=[reporter_id])


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    type = db.Column(db.String(40), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    related_id = db.Column(db.Integer, nullable=True)
    is_read = db.Column(db.Boolean, nullable=False, default=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'related_id': self.related_id,
            'is_read': self.is_read,
            'created_at': self.created_at.isoformat(),
        }
