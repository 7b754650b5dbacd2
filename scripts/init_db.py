import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from fintrack.config import load_config
from fintrack.db import connect, init_db


def main() -> None:
    cfg = load_config()
    if not cfg.MONGO_URL:
        print("Error: MONGO_URL is not defined in the environment.")
        raise SystemExit(1)

    client = connect(cfg)
    try:
        init_db(client[cfg.MONGO_DB_NAME])
    finally:
        client.close()

    print(f"Indexes ready: {cfg.MONGO_DB_NAME}")


if __name__ == "__main__":
    main()
