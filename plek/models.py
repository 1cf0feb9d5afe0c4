# plek/models.py
import enum
import datetime

from plek import db


class Role(str, enum.Enum):
    GUEST = 'guest'
    CUSTOMER = 'customer'
    HOST = 'host'
    ADMIN = 'admin'


class Tier(str, enum.Enum):
    NONE = 'none'
    STANDARD = 'standard'
    PRO = 'pro'


SUBSCRIPTION_STATUSES = ('none', 'trial', 'active', 'past_due', 'canceled')
PACKAGE_CATEGORIES = ('standard', 'hosted', 'addon', 'special')


def utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


booking_guests = db.Table(
    'booking_guests',
    db.Column('booking_id', db.Integer, db.ForeignKey('booking.id'), primary_key=True),
    db.Column('user_id', db.Integer, db.ForeignKey('user.id'), primary_key=True),
)

estimate_guests = db.Table(
    'estimate_guests',
    db.Column('estimate_id', db.Integer, db.ForeignKey('estimate.id'), primary_key=True),
    db.Column('user_id', db.Integer, db.ForeignKey('user.id'), primary_key=True),
)


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password = db.Column(db.String(100), nullable=False)  # hash bcrypt
    roles = db.Column(db.JSON, nullable=False, default=lambda: [Role.CUSTOMER.value])
    subscription_status = db.Column(db.Enum(*SUBSCRIPTION_STATUSES, name='subscription_status'),
                                    nullable=False, default='none')
    plan_tier = db.Column(db.Enum('none', 'standard', 'pro', name='plan_tier'),
                          nullable=False, default='none')
    host_bio = db.Column(db.Text)
    host_phone = db.Column(db.String(40))
    created_at = db.Column(db.DateTime, default=utcnow)

    @property
    def role_set(self):
        found = set()
        for value in self.roles or []:
            try:
                found.add(Role(value))
            except ValueError:
                continue
        return found

    def has_role(self, role):
        return Role(role) in self.role_set

    def set_roles(self, roles):
        self.roles = sorted(Role(r).value for r in roles)

    @property
    def entitlement_tier(self):
        if self.subscription_status not in ('trial', 'active'):
            return Tier.NONE
        return Tier(self.plan_tier or 'none')


class Post(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(200), unique=True, nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.Enum('draft', 'published', name='post_status'), nullable=False, default='draft')
    base_rate = db.Column(db.Float)
    author_id = db.Column(db.Integer, db.ForeignKey('user.id'))
    created_at = db.Column(db.DateTime, default=utcnow)

    author = db.relationship('User', backref=db.backref('posts', lazy=True))
    package_settings = db.relationship('PackageSetting', backref='post', lazy=True,
                                       cascade='all, delete-orphan')

    def setting_for(self, package_ref):
        for setting in self.package_settings:
            if setting.package_ref == str(package_ref):
                return setting
        return None


class PackageSetting(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('post.id'), nullable=False)
    # id local del paquete o id del producto externo
    package_ref = db.Column(db.String(100), nullable=False)
    custom_name = db.Column(db.String(200))
    enabled = db.Column(db.Boolean, default=True)

    __table_args__ = (db.UniqueConstraint('post_id', 'package_ref'),)


class Package(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('post.id'), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    multiplier = db.Column(db.Float, nullable=False, default=1.0)
    category = db.Column(db.Enum(*PACKAGE_CATEGORIES, name='package_category'),
                         nullable=False, default='standard')
    min_nights = db.Column(db.Integer, nullable=False, default=1)
    max_nights = db.Column(db.Integer, nullable=False, default=365)
    entitlement_required = db.Column(db.Enum('none', 'standard', 'pro', name='package_tier'),
                                     nullable=False, default='none')
    revenuecat_id = db.Column(db.String(100))
    base_rate = db.Column(db.Float)
    is_enabled = db.Column(db.Boolean, nullable=False, default=True)
    features = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=utcnow)

    post = db.relationship('Post', backref=db.backref('packages', lazy=True))


class Booking(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200))
    post_id = db.Column(db.Integer, db.ForeignKey('post.id'), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    estimate_id = db.Column(db.Integer, db.ForeignKey('estimate.id'))
    from_date = db.Column(db.DateTime, nullable=False)
    to_date = db.Column(db.DateTime, nullable=False)
    token = db.Column(db.String(64))
    share_token = db.Column(db.String(512))
    payment_status = db.Column(db.Enum('unpaid', 'paid', name='booking_payment_status'),
                               nullable=False, default='unpaid')
    created_at = db.Column(db.DateTime, default=utcnow)

    post = db.relationship('Post', backref=db.backref('bookings', lazy=True))
    customer = db.relationship('User', foreign_keys=[customer_id],
                               backref=db.backref('bookings', lazy=True))
    guests = db.relationship('User', secondary=booking_guests, lazy='subquery')


class Estimate(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200))
    post_id = db.Column(db.Integer, db.ForeignKey('post.id'), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    from_date = db.Column(db.DateTime, nullable=False)
    to_date = db.Column(db.DateTime, nullable=False)
    total = db.Column(db.Float)
    package_type = db.Column(db.String(200))
    selected_package_id = db.Column(db.Integer, db.ForeignKey('package.id'))
    payment_status = db.Column(db.Enum('unpaid', 'paid', name='estimate_payment_status'),
                               nullable=False, default='unpaid')
    checkout_id = db.Column(db.String(100), unique=True)
    confirmed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)

    post = db.relationship('Post', backref=db.backref('estimates', lazy=True))
    customer = db.relationship('User', foreign_keys=[customer_id],
                               backref=db.backref('estimates', lazy=True))
    selected_package = db.relationship('Package')
    guests = db.relationship('User', secondary=estimate_guests, lazy='subquery')
