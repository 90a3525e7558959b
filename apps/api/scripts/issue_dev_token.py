"""
Issue Development Token

Mints a signed access token for local testing against the API, using the
JWT secret from the current environment. In production, tokens come from
the identity provider.

Usage:
    cd apps/api
    python scripts/issue_dev_token.py applicant-123 --email jane@cam.ac.uk --name "Jane Doe"
    python scripts/issue_dev_token.py admin-1 --email admin@example.com --admin
"""

import argparse
import sys
from datetime import timedelta
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from app.core.config import settings
from app.core.security import create_access_token


def main() -> None:
    parser = argparse.ArgumentParser(description="Mint a development access token")
    parser.add_argument("subject", help="User identity (sub claim)")
    parser.add_argument("--email", required=True, help="Email claim")
    parser.add_argument("--name", default=None, help="Display name claim")
    parser.add_argument("--admin", action="store_true", help="Grant the admin claim")
    parser.add_argument("--hours", type=int, default=12, help="Token lifetime in hours")
    args = parser.parse_args()

    if settings.is_production:
        print("Refusing to mint tokens with PYTHON_ENV=production", file=sys.stderr)
        sys.exit(1)

    claims = {"email": args.email, "admin": args.admin}
    if args.name:
        claims["name"] = args.name

    token = create_access_token(
        args.subject,
        additional_claims=claims,
        expires_delta=timedelta(hours=args.hours),
    )

    print(token)


if __name__ == "__main__":
    main()
