import uuid
from datetime import datetime, timezone

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import check_password_hash, generate_password_hash

db = SQLAlchemy()

ROLE_ADMIN = 'admin'

SERVICE_STATUS_ACTIVE = 'active'
SERVICE_STATUS_INACTIVE = 'inactive'
SERVICE_STATUSES = (SERVICE_STATUS_ACTIVE, SERVICE_STATUS_INACTIVE)

PRODUCT_CATEGORIES = (
    'LED Lights',
    'Switches & Sockets',
    'Wires & Cables',
    'MCB / DB Panels',
    'Fans',
    'Inverter & Battery',
    'Industrial Electrical Items',
)


def utc_now_naive():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_uuid():
    return str(uuid.uuid4())


def normalize_service_status(value, default=SERVICE_STATUS_ACTIVE):
    candidate = (value or '').strip().lower()
    if candidate in SERVICE_STATUSES:
        return candidate
    return default


def normalize_product_category(value):
    candidate = (value or '').strip()
    if candidate in PRODUCT_CATEGORIES:
        return candidate
    return ''


class User(UserMixin, db.Model):
    __tablename__ = 'auth_users'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    email_confirmed_at = db.Column(db.DateTime)
    last_sign_in_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utc_now_naive)
    roles = db.relationship('UserRole', backref='user', lazy=True, cascade='all, delete-orphan')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def has_role(self, role):
        return any(item.role == role for item in self.roles)

    @property
    def is_admin(self):
        return self.has_role(ROLE_ADMIN)


class UserRole(db.Model):
    __tablename__ = 'user_roles'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('auth_users.id'), nullable=False, index=True)
    role = db.Column(db.String(30), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utc_now_naive)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'role', name='uq_user_roles_user_role'),
    )


class HeroContent(db.Model):
    __tablename__ = 'hero_section'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    heading = db.Column(db.Text, nullable=False, default='')
    subheading = db.Column(db.Text, nullable=False, default='')
    cta_button_text = db.Column(db.String(120), nullable=False, default='')
    cta_phone = db.Column(db.String(40), nullable=False, default='')
    background_images = db.Column(db.JSON, nullable=False, default=list)
    updated_at = db.Column(db.DateTime, default=utc_now_naive, onupdate=utc_now_naive)


class Service(db.Model):
    __tablename__ = 'services'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    image_url = db.Column(db.String(500))
    status = db.Column(db.String(20), nullable=False, default=SERVICE_STATUS_ACTIVE, index=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0, index=True)
    created_at = db.Column(db.DateTime, default=utc_now_naive)
    updated_at = db.Column(db.DateTime, default=utc_now_naive, onupdate=utc_now_naive)


class Product(db.Model):
    __tablename__ = 'products'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    name = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(80), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    image_url = db.Column(db.String(500))
    featured = db.Column(db.Boolean, nullable=False, default=False, index=True)
    created_at = db.Column(db.DateTime, default=utc_now_naive, index=True)
    updated_at = db.Column(db.DateTime, default=utc_now_naive, onupdate=utc_now_naive)


class ContactSubmission(db.Model):
    __tablename__ = 'contact_submissions'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    name = db.Column(db.String(200), nullable=False)
    phone = db.Column(db.String(50), nullable=False)
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False, index=True)
    read_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utc_now_naive, index=True)


class AuthRateLimitBucket(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    scope = db.Column(db.String(80), nullable=False, index=True)
    ip = db.Column(db.String(64), nullable=False, index=True)
    count = db.Column(db.Integer, nullable=False, default=0)
    reset_at = db.Column(db.DateTime, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_now_naive, onupdate=utc_now_naive)

    __table_args__ = (
        db.UniqueConstraint('scope', 'ip', name='uq_auth_rate_limit_scope_ip'),
    )
