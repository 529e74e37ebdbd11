#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from app.core.config import BOOTSTRAP_ALLOW, IS_DEV  # noqa: E402
from app.core.database import SessionLocal, engine  # noqa: E402
from app.services.admin_bootstrap import bootstrap_admin, ensure_tables  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cria tenant, grupo admin e usuário admin.")
    parser.add_argument("--email", required=True, help="Email do admin")
    parser.add_argument("--password", help="Senha do admin")
    parser.add_argument("--tenant", help="Nome do tenant (default: primeiro tenant ativo)")
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Permite executar fora de DEV sem BOOTSTRAP_ALLOW=1",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    if not IS_DEV and not BOOTSTRAP_ALLOW and not args.force:
        print("Bootstrap desabilitado fora de DEV. Defina BOOTSTRAP_ALLOW=1 ou use --force.")
        return 1

    try:
        ensure_tables(engine)
    except RuntimeError as exc:
        print(str(exc))
        return 1

    db = SessionLocal()
    try:
        user, created = bootstrap_admin(
            db,
            email=args.email,
            password=args.password,
            tenant_name=args.tenant,
            first_name=args.first_name,
            last_name=args.last_name,
        )
    except ValueError as exc:
        print(str(exc))
        return 1
    finally:
        db.close()

    action = "created" if created else "updated"
    print(f"Admin {action}: id={user.id} tenant={user.tenant_id} email={user.email}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
