"""AppUser model - staff accounts that authenticate with email and password."""
import enum
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash
from tableorders.database import Base, IdType


class UserRole(str, enum.Enum):
    """Staff roles. Each role maps to the statuses it may set."""
    SERVER = 'server'
    KITCHEN = 'kitchen'
    ADMIN = 'admin'


class AppUser(Base):
    """AppUser model - servers, kitchen staff and administrators."""

    __tablename__ = 'app_user'

    id = Column(IdType, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.SERVER.value)
    active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AppUser(id={self.id}, email='{self.email}', role='{self.role}')>"
