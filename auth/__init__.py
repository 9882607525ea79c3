"""Authentication module using password credentials and signed session tokens.

This module provides:
1. Account registration and login with salted password hashes
2. Stateless JWT session tokens (logout is a client-side discard)
3. Dependencies for protecting routes
"""

import logging
import re
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Union

import asyncpg
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from config import settings_conf
from database import get_pool
from errors import (
    MarketplaceError, AuthenticationError, AuthorizationError,
    ConflictError, InternalError, NotFoundError, ValidationError
)
from .policy import ROLES, ROLE_USER, ROLE_ADMIN

# Configure logging
logger = logging.getLogger(__name__)

# Constants
JWT_ALGORITHM = "HS256"
JWT_SECRET = settings_conf['jwt_secret'] or secrets.token_urlsafe(32)
TOKEN_EXPIRY_SECONDS = settings_conf['jwt_expires_seconds']
MIN_PASSWORD_LENGTH = 6
EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

if not settings_conf['jwt_secret']:
    logger.warning("No jwt_secret configured; using a random secret, tokens will not survive a restart")

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

USER_COLUMNS = 'id, email, name, role, created_at'

class AuthError(InternalError):
    """Authentication service failure."""
    pass

class EmailAlreadyRegisteredError(AuthError, ConflictError):
    """User already exists."""
    pass

class InvalidAdminCodeError(AuthError, AuthorizationError):
    """Invalid admin code."""
    pass

class InvalidCredentialsError(AuthError, ValidationError):
    """Invalid credentials."""
    pass

class InvalidTokenError(AuthError, AuthenticationError):
    """Invalid or expired token."""
    pass

class SessionExpiredError(InvalidTokenError):
    """Session has expired."""
    pass

class UserNotFoundError(AuthError, NotFoundError):
    """User not found."""
    pass

class InvalidRegistrationError(AuthError, ValidationError):
    """Invalid registration data."""
    pass

class AuthenticatedUser(BaseModel):
    """Identity extracted from a verified token."""
    id: uuid.UUID
    email: str
    role: str

def hash_password(password: str) -> str:
    """Hash a password with a per-password random salt."""
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash."""
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError):
        return False

def normalize_email(email: str) -> str:
    return email.strip().lower()

def serialize_user(row) -> Dict[str, Any]:
    """Convert a users row into its public representation."""
    return {
        'id': str(row['id']),
        'email': row['email'],
        'name': row['name'],
        'role': row['role'],
        'created_at': row['created_at'].isoformat() if row['created_at'] else None
    }

def create_access_token(
    user: Dict[str, Any],
    secret: str = None,
    expires_seconds: int = None
) -> str:
    """Issue a signed session token for a user.

    Args:
        user: Public user dict with id, email and role
        secret: Signing secret, defaults to the configured secret
        expires_seconds: Token lifetime, defaults to the configured lifetime

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(seconds=expires_seconds or TOKEN_EXPIRY_SECONDS)
    claims = {
        'sub': str(user['id']),
        'email': user['email'],
        'role': user['role'],
        'iat': int(now.timestamp()),
        'exp': int(expires_at.timestamp())
    }
    return jwt.encode(claims, secret or JWT_SECRET, algorithm=JWT_ALGORITHM)

def decode_access_token(token: str, secret: str = None) -> Dict[str, Any]:
    """Decode and validate a session token.

    Raises:
        SessionExpiredError: If the token has expired
        InvalidTokenError: If the token is malformed or signed with another secret
    """
    try:
        payload = jwt.decode(token, secret or JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise SessionExpiredError("Session has expired")
    except jwt.JWTError as e:
        raise InvalidTokenError(f"Invalid token: {str(e)}")

    try:
        payload['sub'] = uuid.UUID(str(payload['sub']))
    except (KeyError, ValueError):
        raise InvalidTokenError("Invalid token: missing subject")
    return payload

class AuthManager:
    """Manages accounts and session tokens."""

    def __init__(self, pool=None, secret: str = None, expires_seconds: int = None,
                 admin_code: str = None):
        """Initialize auth manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
            secret: Optional token signing secret, defaults to the configured secret
            expires_seconds: Optional token lifetime, defaults to the configured lifetime
            admin_code: Optional admin registration code, defaults to the configured code
        """
        self.pool = pool
        self.secret = secret or JWT_SECRET
        self.expires_seconds = expires_seconds or TOKEN_EXPIRY_SECONDS
        self.admin_code = settings_conf['admin_code'] if admin_code is None else admin_code

    async def ensure_pool(self):
        """Ensure database pool is available."""
        if not self.pool:
            self.pool = await get_pool()

    def _issue(self, user: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'user': user,
            'token': create_access_token(user, self.secret, self.expires_seconds)
        }

    async def register(
        self,
        email: str,
        password: str,
        name: str,
        role: str = ROLE_USER,
        admin_code: Optional[str] = None
    ) -> Dict[str, Any]:
        """Register a new account.

        Args:
            email: Account email, unique case-insensitively
            password: Plaintext password, hashed before storage
            name: Display name
            role: USER or ADMIN
            admin_code: Required when role is ADMIN

        Returns:
            Dict containing:
                - user: Public user details
                - token: Session token

        Raises:
            InvalidRegistrationError: If a field is invalid
            InvalidAdminCodeError: If ADMIN is requested without the right code
            EmailAlreadyRegisteredError: If the email is taken
        """
        email = normalize_email(email)
        role = role or ROLE_USER
        if role not in ROLES:
            raise InvalidRegistrationError(f"Invalid role: {role}")
        if not EMAIL_REGEX.match(email):
            raise InvalidRegistrationError("Please enter a valid email")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidRegistrationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )
        if not name or not name.strip():
            raise InvalidRegistrationError("Name is required")

        if role == ROLE_ADMIN:
            if not self.admin_code or not admin_code or \
                    not secrets.compare_digest(admin_code, self.admin_code):
                logger.warning(f"Rejected admin registration for {email}")
                raise InvalidAdminCodeError("Invalid admin code")

        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                exists = await conn.fetchval(
                    'SELECT EXISTS(SELECT 1 FROM users WHERE email = $1)',
                    email
                )
                if exists:
                    raise EmailAlreadyRegisteredError("User already exists")

                try:
                    row = await conn.fetchrow(
                        f'''
                        INSERT INTO users (email, password_hash, name, role)
                        VALUES ($1, $2, $3, $4)
                        RETURNING {USER_COLUMNS}
                        ''',
                        email,
                        hash_password(password),
                        name.strip(),
                        role
                    )
                except asyncpg.exceptions.UniqueViolationError:
                    # Lost a race against a concurrent registration
                    raise EmailAlreadyRegisteredError("User already exists")

            logger.info(f"Registered user {row['id']} with role {role}")
            return self._issue(serialize_user(row))

        except AuthError:
            raise
        except Exception as e:
            logger.error(f"Error registering user: {e}")
            raise AuthError("Server error during registration")

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Check credentials and issue a session token.

        Raises:
            InvalidCredentialsError: If the email is unknown or the password is wrong
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f'SELECT {USER_COLUMNS}, password_hash FROM users WHERE email = $1',
                    normalize_email(email)
                )

            # Same error for unknown email and wrong password
            if not row or not verify_password(password, row['password_hash']):
                raise InvalidCredentialsError("Invalid credentials")

            return self._issue(serialize_user(row))

        except AuthError:
            raise
        except Exception as e:
            logger.error(f"Error during login: {e}")
            raise AuthError("Server error during login")

    async def verify(self, token: str) -> AuthenticatedUser:
        """Verify a session token.

        Args:
            token: The session token to verify

        Returns:
            The authenticated identity, with the role currently stored for the user

        Raises:
            SessionExpiredError: If the token has expired
            InvalidTokenError: If the token is invalid or its user no longer exists
        """
        if not token:
            raise InvalidTokenError("Authentication token required")

        payload = decode_access_token(token, self.secret)

        await self.ensure_pool()
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    'SELECT id, email, role FROM users WHERE id = $1',
                    payload['sub']
                )
        except Exception as e:
            logger.error(f"Error verifying session: {e}")
            raise AuthError("Failed to verify session")

        if not row:
            raise InvalidTokenError("User no longer exists")

        return AuthenticatedUser(id=row['id'], email=row['email'], role=row['role'])

    async def get_user(self, user_id: Union[str, uuid.UUID]) -> Dict[str, Any]:
        """Get a user's public details.

        Raises:
            UserNotFoundError: If the user doesn't exist
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f'SELECT {USER_COLUMNS} FROM users WHERE id = $1',
                user_id
            )

        if not row:
            raise UserNotFoundError("User not found")
        return serialize_user(row)

# Create global instance
manager = AuthManager()

# FastAPI security scheme
auth_scheme = HTTPBearer(
    auto_error=False,  # Missing tokens are answered with 401 below
    description="JWT Bearer token required"
)

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme)
) -> AuthenticatedUser:
    """FastAPI dependency for getting the authenticated user.

    Args:
        credentials: Bearer token credentials

    Returns:
        The authenticated identity

    Raises:
        HTTPException: 401 if authentication fails
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token required",
            headers={"WWW-Authenticate": "Bearer"}
        )
    try:
        return await manager.verify(credentials.credentials)
    except SessionExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has expired",
            headers={"WWW-Authenticate": "Bearer"}
        )
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"}
        )

# Export public interface
__all__ = [
    'manager',
    'AuthManager',
    'AuthenticatedUser',
    'get_current_user',
    'auth_scheme',
    'hash_password',
    'verify_password',
    'create_access_token',
    'decode_access_token',
    'serialize_user',
    'USER_COLUMNS',
    'AuthError',
    'EmailAlreadyRegisteredError',
    'InvalidAdminCodeError',
    'InvalidCredentialsError',
    'InvalidRegistrationError',
    'InvalidTokenError',
    'SessionExpiredError',
    'UserNotFoundError'
]
