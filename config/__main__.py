"""Command line interface for checking configuration loading"""
from . import settings_conf
from pathlib import Path

SECRET_KEYS = {'jwt_secret', 'admin_code'}

def mask(key: str, value) -> str:
    """Hide secrets, keeping only whether they are set"""
    if key in SECRET_KEYS:
        return '<set>' if value else '<not set>'
    return str(value)

def main():
    """Display loaded configuration"""
    print("\nSettings Configuration:")
    print("-" * 50)
    for key, value in settings_conf.items():
        print(f"{key}: {mask(key, value)}")

    # Save example configuration file
    examples_dir = Path("examples")
    examples_dir.mkdir(exist_ok=True)

    with open(examples_dir / "settings.conf.example", "w") as f:
        f.write("""[DEFAULT]
# PostgreSQL (or CockroachDB) connection URL
db_url = postgresql://postgres@localhost:5432/thrift
# Secret used to sign session tokens
jwt_secret = change-me
# Token lifetime: seconds or a number followed by s, m, h or d
jwt_expires_in = 7d
# Code required to register an ADMIN account (empty disables it)
admin_code =
# Allowed cross-origin callers, comma separated
cors_origin = http://localhost:3000
port = 5000
log_level = INFO
""")

if __name__ == "__main__":
    main()
