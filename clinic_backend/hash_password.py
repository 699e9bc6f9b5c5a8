"""Print a bcrypt hash for a password, e.g. to seed the first admin account.

Usage:
    python -m clinic_backend.hash_password <password>
"""
import sys

from clinic_backend.auth.passwords import hash_password


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: python -m clinic_backend.hash_password <password>", file=sys.stderr)
        return 1
    print(hash_password(args[0]))
    return 0


if __name__ == "__main__":
    sys.exit(main())
