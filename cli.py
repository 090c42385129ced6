import argparse
import datetime
import json
import logging
import os
import shutil
import time
from typing import Optional

from algorithms import WeightConverter
from client import TrackerClient
from config import DEFAULT_DB_PATH, DEFAULT_PORT, DEFAULT_YAML_PATH, configure_logging
from db import DailyEntryRepository, ExerciseRepository, DataTransferRepository

logger = logging.getLogger(__name__)


def export_json(
    db_path: str,
    out_path: str,
    url: Optional[str] = None,
    api_key: Optional[str] = None,
) -> int:
    """Write a JSON backup from the local database or a remote server."""
    if url:
        data = TrackerClient(url, api_key=api_key).export_data()
    else:
        data = DataTransferRepository(db_path).export_data()
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    return len(data)


def import_json(
    src_path: str,
    db_path: str,
    url: Optional[str] = None,
    api_key: Optional[str] = None,
) -> int:
    """Replace all data with the contents of a JSON backup."""
    with open(src_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if url:
        return TrackerClient(url, api_key=api_key).import_data(data)
    return DataTransferRepository(db_path).import_data(data)


def export_csv(
    db_path: str,
    out_path: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> None:
    data = DataTransferRepository(db_path).export_csv(start_date, end_date)
    with open(out_path, "w", encoding="utf-8", newline="") as f:
        f.write(data)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def demo_data(db_path: str, days: int = 14) -> bool:
    """Populate the database with two weeks of sample entries if empty."""
    entries = DailyEntryRepository(db_path)
    if entries.count():
        print("Database already contains entries")
        return False
    exercises = ExerciseRepository(db_path)
    today = datetime.date.today()
    for offset in range(days, 0, -1):
        day = today - datetime.timedelta(days=offset)
        idx = days - offset
        entry_id = entries.create(
            day.isoformat(),
            round(82.0 - idx * 0.15, 2),
            2200 + (idx % 3) * 150,
        )
        if idx % 2 == 0:
            exercises.add(entry_id, "Running", f"{3 + idx // 4}km in 30 mins")
        if idx % 3 == 0:
            exercises.add(entry_id, "Push-ups", f"{3 + idx // 6} sets of 10")
    print("Demo data inserted")
    return True


def benchmark(url: str, runs: int = 10, client: Optional[TrackerClient] = None) -> float:
    client = client or TrackerClient(url)
    times: list[float] = []
    for _ in range(runs):
        t0 = time.time()
        client.health()
        times.append(time.time() - t0)
    avg = sum(times) / len(times)
    print(f"Average /health response time over {runs} runs: {avg:.4f}s")
    return avg


def serve(
    db_path: str,
    yaml_path: str,
    host: str,
    port: int,
    rate_limit: Optional[int] = None,
) -> None:
    import uvicorn
    from rest_api import TrackerAPI

    api = TrackerAPI(db_path=db_path, yaml_path=yaml_path, rate_limit=rate_limit)
    logger.info("serving %s on %s:%s", db_path, host, port)
    uvicorn.run(api.app, host=host, port=port)


def main(argv: Optional[list[str]] = None) -> None:
    db_default = os.environ.get("DB_PATH", DEFAULT_DB_PATH)
    yaml_default = os.environ.get("YAML_PATH", DEFAULT_YAML_PATH)
    parser = argparse.ArgumentParser(description="Fitness tracker utility commands")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="cmd", required=True)

    srv = sub.add_parser("serve")
    srv.add_argument("--db", default=db_default)
    srv.add_argument("--yaml", default=yaml_default)
    srv.add_argument("--host", default=os.environ.get("HOST", "0.0.0.0"))
    srv.add_argument("--port", type=int, default=int(os.environ.get("PORT", DEFAULT_PORT)))
    srv.add_argument("--rate-limit", type=int, default=None)

    exp = sub.add_parser("export")
    exp.add_argument("--db", default=db_default)
    exp.add_argument(
        "--out", default=f"fitness-tracker-backup-{datetime.date.today().isoformat()}.json"
    )
    exp.add_argument("--url", default=None)
    exp.add_argument("--api-key", default=None)

    imp = sub.add_parser("import")
    imp.add_argument("--in", dest="src", required=True)
    imp.add_argument("--db", default=db_default)
    imp.add_argument("--url", default=None)
    imp.add_argument("--api-key", default=None)

    csv_exp = sub.add_parser("export-csv")
    csv_exp.add_argument("--db", default=db_default)
    csv_exp.add_argument("--out", default="fitness-data.csv")
    csv_exp.add_argument("--start", default=None)
    csv_exp.add_argument("--end", default=None)

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default=db_default)
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default=db_default)

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default=db_default)

    bench = sub.add_parser("benchmark")
    bench.add_argument("--url", default=f"http://localhost:{DEFAULT_PORT}")
    bench.add_argument("--runs", type=int, default=10)

    conv = sub.add_parser("convert")
    conv.add_argument("--weight", type=float, required=True)
    conv.add_argument("--unit", choices=["kg", "lb"], required=True)

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.cmd == "serve":
        serve(args.db, args.yaml, args.host, args.port, args.rate_limit)
    elif args.cmd == "export":
        count = export_json(args.db, args.out, args.url, args.api_key)
        print(f"Exported {count} entries to {args.out}")
    elif args.cmd == "import":
        count = import_json(args.src, args.db, args.url, args.api_key)
        print(f"Imported {count} entries")
    elif args.cmd == "export-csv":
        export_csv(args.db, args.out, args.start, args.end)
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "demo":
        demo_data(args.db)
    elif args.cmd == "benchmark":
        benchmark(args.url, args.runs)
    elif args.cmd == "convert":
        if args.unit == "kg":
            print(f"{args.weight} kg = {WeightConverter.kg_to_lb(args.weight)} lb")
        else:
            print(f"{args.weight} lb = {WeightConverter.lb_to_kg(args.weight)} kg")


if __name__ == "__main__":
    main()
