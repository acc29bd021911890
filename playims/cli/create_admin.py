import sys

from sqlalchemy import select

from playims.config import settings
from playims.database import Base, SessionLocal, engine
from playims.models import Account
from playims.roles import ROLE_ADMIN
from playims.schemas.auth import is_valid_email
from playims.security import resolve_password_pepper


def main():
    Base.metadata.create_all(bind=engine)

    email = input("Email: ").strip().lower()
    first_name = input("First name: ").strip()
    last_name = input("Last name: ").strip()
    password = input("Password: ").strip()

    if not all([email, password]):
        print("Email and password are required.")
        sys.exit(1)
    if not is_valid_email(email):
        print("Please enter a valid email address.")
        sys.exit(1)
    if not 8 <= len(password) <= 128:
        print("Password must be 8 to 128 characters.")
        sys.exit(1)

    pepper = resolve_password_pepper(settings)
    db = SessionLocal()
    try:
        existing = db.execute(
            select(Account).where(Account.email_matches(email))
        ).scalar_one_or_none()

        if existing:
            print(f"Account with email {email} already exists.")
            sys.exit(1)

        account = Account(
            email=email,
            first_name=first_name or None,
            last_name=last_name or None,
            role=ROLE_ADMIN,
            password_hash="",
        )
        account.set_password(password, pepper, settings.bcrypt_rounds)
        db.add(account)
        db.commit()
        print(f"Admin account '{email}' created successfully.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
