from datetime import datetime

from sqlalchemy.orm import Session

from .cache import get_cache
from .db import SessionLocal
from .db_init import create_tables
from .errors import OddsVaultError
from .logging_config import configure_logging
from .mapper import CreateOddsInput
from .models import Creator, Role
from .service import OddsCacheService, utcnow
from .store import OddsStore


def add_creator(db: Session, username: str, email: str, role: str = "bookmaker") -> Creator:
    now = utcnow()
    creator = Creator(username=username, email=email, role=Role(role), active=True,
                      created_at=now, updated_at=now)
    return OddsStore(db).add_creator(creator)


def build_service(db: Session, cache=None) -> OddsCacheService:
    return OddsCacheService(OddsStore(db), cache if cache is not None else get_cache())


def add_odds(service: OddsCacheService, sport: str, home: str, away: str, start_iso: str,
             oh: str, od: str, oa: str, created_by: int | None = None):
    data = CreateOddsInput(
        sport=sport, home_team=home, away_team=away,
        home_odds=oh, draw_odds=od, away_odds=oa,   # validated and converted by the service
        match_date=datetime.fromisoformat(start_iso),   # e.g. "2026-11-05T19:30:00"
        created_by_id=created_by,
    )
    return service.create(data)


def main(argv=None):
    import argparse
    ap = argparse.ArgumentParser(prog="oddsvault")
    sub = ap.add_subparsers(dest="cmd", required=True)

    sub.add_parser("init-db", help="Create tables")

    ap_c = sub.add_parser("add-creator", help="Add a user that can own odds")
    ap_c.add_argument("--username", required=True)
    ap_c.add_argument("--email", required=True)
    ap_c.add_argument("--role", default="bookmaker", choices=[r.value for r in Role])

    ap_o = sub.add_parser("add-odds", help="Add a 1X2 odds record")
    ap_o.add_argument("--sport", required=True)
    ap_o.add_argument("--home", required=True)
    ap_o.add_argument("--away", required=True)
    ap_o.add_argument("--start", required=True, help='ISO time, e.g. "2026-11-05T19:30:00"')
    ap_o.add_argument("--oh", required=True)
    ap_o.add_argument("--od", required=True)
    ap_o.add_argument("--oa", required=True)
    ap_o.add_argument("--created-by", type=int, default=None)

    ap_s = sub.add_parser("show", help="Show one odds record")
    ap_s.add_argument("--id", type=int, required=True)
    ap_s.add_argument("--margin", action="store_true")

    for name in ("deactivate", "delete"):
        p = sub.add_parser(name)
        p.add_argument("--id", type=int, required=True)

    args = ap.parse_args(argv)
    configure_logging(json=False)

    if args.cmd == "init-db":
        create_tables()
        print("✔ Tables created in database.")
        return 0

    db = SessionLocal()
    try:
        if args.cmd == "add-creator":
            c = add_creator(db, args.username, args.email, args.role)
            print(f"✔ creator id={c.id} {c.username} ({c.role.value})")
            return 0

        service = build_service(db)
        if args.cmd == "add-odds":
            v = add_odds(service, args.sport, args.home, args.away, args.start,
                         args.oh, args.od, args.oa, args.created_by)
            print(f"✔ odds created id={v.id}  {v.home_team} vs {v.away_team}  start={v.match_date}")
        elif args.cmd == "show":
            v = service.get_with_margin(args.id) if args.margin else service.get_by_id(args.id)
            print(f"{v.id}: {v.home_team} vs {v.away_team} [{v.sport}] "
                  f"{v.home_odds}/{v.draw_odds}/{v.away_odds} active={v.active}")
            if args.margin:
                print(f"   margin={v.bookmaker_margin:.2f}%")
        elif args.cmd == "deactivate":
            v = service.deactivate(args.id)
            print(f"✔ odds id={v.id} deactivated")
        elif args.cmd == "delete":
            service.delete(args.id)
            print(f"✔ odds id={args.id} deleted")
        return 0
    except OddsVaultError as e:
        print(f"[ERROR] {e.code}: {e.message}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
