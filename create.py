# create.py
from getpass import getpass

from marketplace import create_app
from marketplace.errors import MarketplaceError
from marketplace.models.user import Role
from marketplace.services import user_service


def main():
    app = create_app()
    with app.app_context():
        username = input("Admin username: ").strip()
        email = input("Admin email: ").strip().lower()
        first_name = input("First name (optional): ").strip()
        last_name = input("Last name (optional): ").strip()
        password = getpass("Password: ")

        try:
            user = user_service.register(
                username=username,
                email=email,
                password=password,
                first_name=first_name or None,
                last_name=last_name or None,
                role=Role.ADMIN,
            )
        except MarketplaceError as e:
            print(f"Could not create admin: {e.message}")
            return

        print(f"Admin user {user.username} <{user.email}> created successfully.")


if __name__ == "__main__":
    main()
