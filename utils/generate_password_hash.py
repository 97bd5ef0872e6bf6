"""
Helper script to generate the stored hash of a 6-digit PIN.

Useful for resetting a member's PIN directly in the database:

    UPDATE users SET password = '<hash>' WHERE email = 'admin@postpos.com';

Members can change their own PIN from the Settings page.

Usage:
    python -m utils.generate_password_hash
"""
import getpass

from core.auth import PIN_RE, hash_password

if __name__ == "__main__":
    print("=" * 60)
    print("PIN Hash Generator")
    print("=" * 60)

    pin = getpass.getpass("Enter 6-digit PIN to hash: ")
    if not PIN_RE.match(pin):
        raise SystemExit("❌ PIN must be exactly 6 numbers")

    print("\n✅ PIN hash generated:")
    print(f"\n{hash_password(pin)}")
    print("=" * 60)
