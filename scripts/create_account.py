import argparse
import os
import sys

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from fairbet.config import settings
from fairbet.core.casino import Casino


def create_account(balance=None):
    """Creates an account in the configured store and prints its id."""
    casino = Casino(config=settings)
    casino.open()
    try:
        account = casino.create_account(balance)
    finally:
        casino.close()

    print(f"Created account {account.id} with balance {account.balance}.")
    print(f"Send the cookie 'user_id={account.id}' with API requests.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a funded fairbet account.")
    parser.add_argument("--balance", type=int, default=None, help="Starting balance (default from config)")
    args = parser.parse_args()
    create_account(args.balance)
