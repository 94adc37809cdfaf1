"""
Profile Service - lazy profile and wallet provisioning, role seeding, profile edits

A user's profile and wallet are created on first login. The role comes from
the role_assignments table, which is seeded from configuration at startup.
"""

import logging
from typing import Iterable, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from config import Config
from database import SessionLocal, managed_session
from models import Profile, RoleAssignment, UserRole, Wallet
from utils.exception_handler import AuthenticationError, NotFoundError, ValidationError, translate_store_errors
from utils.session_context import SessionContext

logger = logging.getLogger(__name__)

MAX_DISPLAY_NAME_LENGTH = 100


def require_profile(session: Session, user_id: str) -> Profile:
    """
    Load the caller's profile inside an open session.

    Rows owned by a user reference profiles.id, so writes check this first.
    A missing profile means the caller never went through provisioning.
    """
    profile = session.get(Profile, user_id)
    if profile is None:
        logger.warning(f"🚫 PROFILE_MISSING: {user_id} has no profile")
        raise AuthenticationError("User profile is not set up, sign in again")
    return profile


class ProfileService:
    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or SessionLocal

    @translate_store_errors("ensure_profile")
    def ensure_profile(self, ctx: SessionContext, display_name: Optional[str] = None) -> Profile:
        """
        Return the caller's profile, creating profile and wallet on first call.

        Safe to call on every login. If two first logins race, the loser's
        insert hits the unique key and it re-reads the winner's rows.
        """
        user_id = ctx.require_user()
        email = (ctx.email or "").strip().lower() or None

        try:
            profile, created = self._get_or_create(user_id, email, display_name)
        except IntegrityError:
            logger.info(f"🔁 PROFILE_CREATE_RACE: {user_id} already provisioned, re-reading")
            profile, created = self._get_or_create(user_id, email, display_name)

        if created:
            logger.info(f"👤 PROFILE_CREATED: {user_id} ({email}) role={profile.role}")
        return profile

    def _get_or_create(self, user_id: str, email: Optional[str],
                       display_name: Optional[str]) -> Tuple[Profile, bool]:
        created = False
        with managed_session(self.session_factory) as session:
            profile = session.get(Profile, user_id)
            if profile is None:
                profile = Profile(
                    id=user_id,
                    email=email,
                    display_name=(display_name or "").strip() or email,
                    role=self._seeded_role(session, email),
                )
                session.add(profile)
                session.flush()
                created = True

            wallet = session.query(Wallet).filter(Wallet.user_id == user_id).first()
            if wallet is None:
                session.add(Wallet(
                    user_id=user_id,
                    balance=Config.DEFAULT_WALLET_BALANCE,
                    currency=Config.DEFAULT_CURRENCY,
                ))
                session.flush()
                logger.info(f"👛 WALLET_CREATED: {user_id} with {Config.DEFAULT_WALLET_BALANCE} {Config.DEFAULT_CURRENCY}")

        return profile, created

    @staticmethod
    def _seeded_role(session: Session, email: Optional[str]) -> str:
        if not email:
            return UserRole.USER.value
        assignment = session.get(RoleAssignment, email)
        return assignment.role if assignment else UserRole.USER.value

    @translate_store_errors("seed_role_assignments")
    def seed_role_assignments(self, emails: Iterable[str], role: str = UserRole.ADMIN.value) -> int:
        """Upsert role assignments and promote existing profiles with those emails"""
        valid_roles = {r.value for r in UserRole}
        if role not in valid_roles:
            raise ValidationError(f"Role must be one of {sorted(valid_roles)}")

        normalized = sorted({e.strip().lower() for e in emails if e and e.strip()})
        if not normalized:
            return 0

        with managed_session(self.session_factory) as session:
            for email in normalized:
                assignment = session.get(RoleAssignment, email)
                if assignment is None:
                    session.add(RoleAssignment(email=email, role=role))
                else:
                    assignment.role = role

            promoted = (
                session.query(Profile)
                .filter(Profile.email.in_(normalized), Profile.role != role)
                .all()
            )
            for profile in promoted:
                profile.role = role

        logger.info(f"🔐 ROLES_SEEDED: {len(normalized)} emails as {role}, {len(promoted)} existing profiles updated")
        return len(normalized)

    @translate_store_errors("update_profile")
    def update_profile(self, ctx: SessionContext, display_name: str) -> Profile:
        user_id = ctx.require_user()
        display_name = (display_name or "").strip()
        if not display_name:
            raise ValidationError("Display name cannot be empty")
        if len(display_name) > MAX_DISPLAY_NAME_LENGTH:
            raise ValidationError(f"Display name must be at most {MAX_DISPLAY_NAME_LENGTH} characters")

        with managed_session(self.session_factory) as session:
            profile = session.get(Profile, user_id)
            if profile is None:
                raise NotFoundError("Profile not found")
            profile.display_name = display_name
            session.flush()

        logger.info(f"✏️ PROFILE_UPDATED: {user_id}")
        return profile

    @translate_store_errors("get_profile")
    def get_profile(self, ctx: SessionContext) -> Profile:
        user_id = ctx.require_user()
        with managed_session(self.session_factory) as session:
            profile = session.get(Profile, user_id)
            if profile is None:
                raise NotFoundError("Profile not found")
            return profile

    @translate_store_errors("get_wallet")
    def get_wallet(self, ctx: SessionContext) -> Wallet:
        user_id = ctx.require_user()
        with managed_session(self.session_factory) as session:
            wallet = session.query(Wallet).filter(Wallet.user_id == user_id).first()
            if wallet is None:
                raise NotFoundError("Wallet not found")
            return wallet
