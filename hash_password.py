"""
Print a bcrypt hash for ADMIN_PASSWORD_HASH, so the admin password
does not have to sit in the environment in clear text.
"""
import getpass
import sys

from wgpanel.auth import hash_password

if __name__ == "__main__":
    if len(sys.argv) > 1:
        password = sys.argv[1]
    else:
        password = getpass.getpass("New admin password: ")
        if password != getpass.getpass("Repeat: "):
            print("Passwords do not match")
            sys.exit(1)

    if len(password) < 8:
        print("Password must be at least 8 characters")
        sys.exit(1)

    print(f"ADMIN_PASSWORD_HASH={hash_password(password)}")
