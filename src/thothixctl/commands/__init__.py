"""thothixctl commands package.
thothixctl 명령어 패키지.

Structure:
    commands/
    ├── __init__.py          # This file
    ├── vault.py             # sync, init, cleanup, sections
    ├── deploy.py            # up, down, logs, status, vault (per environment)
    ├── db.py                # psql inspection helpers
    ├── dev.py               # format, lint, test, pre-commit
    └── ngrok.py             # webhook tunnel
"""

from thothixctl.commands import db, deploy, dev, ngrok, vault

__all__ = [
    "db",
    "deploy",
    "dev",
    "ngrok",
    "vault",
]
