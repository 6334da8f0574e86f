import os
import pathlib
from dotenv import load_dotenv

load_dotenv()

database_url = os.getenv("DATABASE_URL")
user = os.getenv("DB_USER")
password = os.getenv("DB_PASSWORD")
host = os.getenv("DB_HOST")
port = os.getenv("DB_PORT", "5432")
db_name = os.getenv("DB_NAME")
sqlite_path = os.getenv(
    "SQLITE_PATH", str(pathlib.Path(__file__).parents[1] / "slotboard.sqlite3")
)

log_level = os.getenv("LOG_LEVEL", "INFO").upper()
# Number of leading ranks compared before a rankings push is suppressed
top_k = int(os.getenv("TOP_K", "10"))
winner_count = int(os.getenv("WINNER_COUNT", "3"))
top_players_limit = int(os.getenv("TOP_PLAYERS_LIMIT", "10"))
heartbeat_interval_sec = int(os.getenv("HEARTBEAT_INTERVAL_SEC", "30"))
allowed_origins = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
    if origin.strip()
]

if __name__ == "__main__":
    print(database_url, user, host, port, db_name, sqlite_path)
